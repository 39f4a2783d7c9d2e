"""Random short code generation.

Codes are drawn character by character, uniformly and independently, from the
62-character alphanumeric alphabet. Nothing here checks uniqueness; the URL
registry retries on insert conflicts.
"""

from nanoid import generate

__all__ = ["ALPHABET", "generate_short_code"]

ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


def generate_short_code(length: int) -> str:
    assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
    return generate(ALPHABET, length)
