"""Verification code generation."""

import secrets
import string

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


def generate_code(length: int = CODE_LENGTH) -> str:
    """Create an uppercase alphanumeric code drawn from the OS CSPRNG.

    Six characters over a 36-symbol alphabet give roughly 2^31 combinations.
    Uniqueness is not enforced; lookups always pair the code with its email.
    """
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
