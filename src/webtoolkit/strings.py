"""String helpers: random tokens and URL slugs."""

import re
import secrets
import string

from .exceptions import SlugError

RANDOM_STRING_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
"""
The 62 ASCII letters and digits, each exactly once.

Older versions listed 63 characters, but that list repeated ``8`` and
lacked ``x``; the intended set was always the plain alphanumerics.
"""

_SLUG_SEPARATORS = re.compile(r'[^a-z0-9]+')


def random_string(length: int) -> str:
    """
    Return ``length`` characters drawn from RANDOM_STRING_ALPHABET.

    Uses the ``secrets`` module, so the result is suitable for file names
    that must not be guessable.
    """
    if length < 0:
        raise ValueError("length must not be negative")
    return ''.join(secrets.choice(RANDOM_STRING_ALPHABET) for _ in range(length))


def slugify(text: str) -> str:
    """
    Convert ``text`` to a URL safe slug.

    Lowercases the input, collapses every run of characters outside
    ``[a-z0-9]`` into a single ``-`` and trims dashes from both ends.

    Raises:
        SlugError: If the input is empty or nothing is left after cleanup
    """
    if not text:
        raise SlugError("empty string not permitted")

    slug = _SLUG_SEPARATORS.sub('-', text.lower()).strip('-')

    if not slug:
        raise SlugError("after removing characters, slug is zero length")

    return slug
