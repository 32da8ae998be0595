"""
Compact hex tokens for cell ids.

A token is the 16-nibble lowercase hex form of the id with trailing zero nibbles
removed, so coarser cells get shorter tokens and a cell's token is a prefix-friendly
string key (`"89c25"` for a level-8 cell, 16 characters for a leaf).
"""

from __future__ import annotations

import re

from geocell.core.errors import TokenFormatError

_TOKEN_RE = re.compile(r"[0-9a-fA-F]{1,16}")


def cell_id_to_token(cell_id: int) -> str:
    return format(cell_id, "016x").rstrip("0") or "0"


def token_to_cell_id(token: str) -> int:
    if not isinstance(token, str) or not _TOKEN_RE.fullmatch(token):
        raise TokenFormatError(
            "token", token, f"token must be 1-16 hexadecimal characters, got {token!r}"
        )
    return int(token.ljust(16, "0"), 16)
