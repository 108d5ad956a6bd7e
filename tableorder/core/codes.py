# tableorder/core/codes.py
import secrets
import string
from typing import Callable

from tableorder.core.exceptions import ConflictError

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
JOIN_CODE_LENGTH = 6


def new_id() -> str:
    """Opaque record identifier: 128 random bits as hex."""
    return secrets.token_hex(16)


def new_join_code() -> str:
    """6 symbols drawn uniformly from [A-Z0-9] (~31 bits)."""
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))


def is_well_formed_join_code(code: str) -> bool:
    return len(code) == JOIN_CODE_LENGTH and all(c in JOIN_CODE_ALPHABET for c in code)


def generate_unique_join_code(is_taken: Callable[[str], bool], max_attempts: int = 10) -> str:
    """
    Generates a join code that `is_taken` reports as free.
    Only codes of active sessions count as taken; a Served order's code may be reused.
    """
    for _ in range(max_attempts):
        code = new_join_code()
        if not is_taken(code):
            return code
    raise ConflictError(f"Could not generate a free join code after {max_attempts} attempts.")
