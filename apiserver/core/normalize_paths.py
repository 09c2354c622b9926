"""Path Normalization: prefixes, specification paths and joined route paths.

Invariants:
    - A valid prefix always starts with "/" (and ends with "/" when required)
    - Prefixes are lower-case and match ^/?[a-z][a-z0-9]*/?$ before normalization
    - Literal path segments are lower-cased, {placeholders} keep their case
    - Joined route paths never contain "//"

Design Decisions:
    - Pure functions, no IO: called from config, specification and router alike
"""

import re

from apiserver.core.errors import InvalidPrefixError

_PREFIX_PATTERN = re.compile(r"^/?[a-z][a-z0-9]*/?$")
_PLACEHOLDER_PATTERN = re.compile(r"(\{[^}]*\})")


def normalize_prefix(prefix: str, require_trailing_slash: bool) -> str:
    """Lower-case and validate a prefix, returning it as /name or /name/.

    Raises InvalidPrefixError for empty or malformed prefixes.
    """
    prefix = (prefix or "").lower()
    if not _PREFIX_PATTERN.match(prefix):
        raise InvalidPrefixError(prefix)
    if not prefix.startswith("/"):
        prefix = "/" + prefix
    if require_trailing_slash and not prefix.endswith("/"):
        prefix = prefix + "/"
    return prefix


def normalize_path(path: str) -> str:
    """Case-normalize a path template for storage and duplicate comparison."""
    parts = _PLACEHOLDER_PATTERN.split(path)
    # split() with a capture group alternates literal, placeholder, literal, ...
    path = "".join(
        part if i % 2 else part.lower() for i, part in enumerate(parts)
    )
    if not path.startswith("/"):
        path = "/" + path
    return path


def join_route(*parts: str) -> str:
    """Join prefix and path parts into one route path with single slashes."""
    segments = [s for part in parts for s in part.split("/") if s]
    route = "/" + "/".join(segments)
    if segments and parts[-1].endswith("/"):
        route += "/"
    return route
