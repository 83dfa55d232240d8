"""Retrieval code generation.

Codes are 6 characters from a 32-symbol alphabet with the look-alikes
(0/O, 1/I) removed, giving 32**6 (about 1.07e9) combinations. The generator
does not check for collisions; the unique constraint on files.code does.
"""
import secrets

CODE_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
CODE_LENGTH = 6


def generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(code: str) -> str:
    """Canonical form used for storage and lookups (codes are case-insensitive)."""
    return code.strip().upper()


def is_valid_code(code: str) -> bool:
    return len(code) == CODE_LENGTH and all(c in CODE_ALPHABET for c in code)
