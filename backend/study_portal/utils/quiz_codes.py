"""Quiz code generation.

Codes are what quiz takers type to open a quiz, so the alphabet leaves
out characters that are easy to confuse when read aloud or copied by
hand (I, O, 0 and 1).
"""

import secrets

QUIZ_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
QUIZ_CODE_LENGTH = 6


def generate_quiz_code(length: int = QUIZ_CODE_LENGTH) -> str:
    """Return `length` characters drawn uniformly, with replacement, from the alphabet."""
    return "".join(secrets.choice(QUIZ_CODE_ALPHABET) for _ in range(length))


def normalize_quiz_code(code: str) -> str:
    """Canonical form used for lookups: surrounding whitespace removed, upper-cased."""
    return code.strip().upper()
