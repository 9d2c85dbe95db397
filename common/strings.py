"""
String helpers: random tokens and URL slugs.
"""

import re
import secrets

from common.exceptions import EmptyInputError

# 64 symbols, so every character carries six bits
RANDOM_STRING_SOURCE = (
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "0123456789"
    "_+"
)

_NON_SLUG_RUN = re.compile(r"[^a-z0-9]+")


def gen_random_string(n: int) -> str:
    """Return ``n`` characters drawn uniformly from ``RANDOM_STRING_SOURCE``.

    Uses the ``secrets`` CSPRNG. There is no uniqueness guarantee across calls
    beyond the birthday bound of a 64-symbol alphabet.
    """
    if n < 0:
        raise ValueError(f"length must be non-negative, got {n}")
    return "".join(secrets.choice(RANDOM_STRING_SOURCE) for _ in range(n))


def make_slug(text: str) -> str:
    """Convert ``text`` into a lowercase, hyphen-separated slug.

    Raises:
        EmptyInputError: If ``text`` is empty or nothing slug-safe remains.
    """
    if not text:
        raise EmptyInputError("empty string not permitted", value=text)

    slug = _NON_SLUG_RUN.sub("-", text.lower()).strip("-")
    if not slug:
        raise EmptyInputError("after removing characters, slug is zero length", value=text)

    return slug
