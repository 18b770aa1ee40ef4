"""URL slug generation."""

import re
from unicodedata import normalize

from pymdownx.slugs import slugify as _md_slugify

# Pre-configured slugifier, reused across calls
_slugify_lower = _md_slugify(case="lower")

_RE_REPEATED_SEP = re.compile(r"-{2,}")

MAX_SLUG_LENGTH = 200


def slugify(text: str, max_len: int = MAX_SLUG_LENGTH) -> str:
    """Convert a title to a lowercase ASCII slug.

    >>> slugify("Hello World!")
    'hello-world'
    >>> slugify("Café à Paris")
    'cafe-a-paris'
    >>> slugify("  A -- B  ")
    'a-b'

    Returns an empty string when nothing slug-worthy is left.
    """
    if not text:
        return ""

    ascii_text = normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = _slugify_lower(ascii_text, "-")
    slug = _RE_REPEATED_SEP.sub("-", slug.replace("_", "-")).strip("-")

    if len(slug) > max_len:
        slug = slug[:max_len].rstrip("-")
    return slug
