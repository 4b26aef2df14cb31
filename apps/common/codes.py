import secrets
import string
from typing import Protocol


class _ExistsFunc(Protocol):
    def __call__(self, code: str) -> bool:
        ...


# No 0/O or 1/I: codes are read aloud at the truck window
_ALPHABET = "".join(c for c in string.ascii_uppercase + string.digits if c not in "01IO")


def _random_code(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_unique_code(
    *,
    length: int = 6,
    prefix: str = "",
    exists: _ExistsFunc,
    max_attempts: int = 12,
) -> str:
    """Return ``prefix`` + a random code that is unique under the provided exists() check."""
    for _ in range(max_attempts):
        code = f"{prefix}{_random_code(length)}"
        if not exists(code):
            return code
    raise RuntimeError("unable to generate unique code")
