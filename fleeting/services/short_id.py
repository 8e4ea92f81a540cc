"""Cryptographically secure short id generation."""

import secrets
import string

# URL-safe, 64 symbols
ALPHABET = string.ascii_letters + string.digits + "-_"


def generate_short_id(length: int = 10) -> str:
    """Generate an unguessable short id.

    At the default length that is 60 bits of entropy from `secrets`.
    """
    return "".join(secrets.choice(ALPHABET) for _ in range(length))
