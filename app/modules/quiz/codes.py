"""Join code generation.

Codes are short, uppercase and drawn from an alphabet without the
visually confusable characters I, O, 0 and 1 so students can type them off
a projector.
"""

from __future__ import annotations

import secrets

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_code(length: int = 6) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(max(1, int(length))))


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()
