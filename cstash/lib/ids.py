"""Identifier helpers for stored records."""

from __future__ import annotations

import base64
import secrets

_ID_BYTES = 8
_STRIP = str.maketrans("", "", "+/=")


def new_secure_id() -> str:
    """Return a random printable identifier without base64 symbols."""

    encoded = base64.b64encode(secrets.token_bytes(_ID_BYTES)).decode("ascii")
    return encoded.translate(_STRIP)
