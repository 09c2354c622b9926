"""Path Normalization: verifies prefix validation, path case folding and route joining.

Invariants:
    - Every valid prefix normalizes to a string starting (and, when asked, ending) with "/"
    - Invalid prefixes raise InvalidPrefixError
    - Placeholders keep their case, literals do not
"""

import pytest

from apiserver.core.errors import ConfigurationError, InvalidPrefixError
from apiserver.core.normalize_paths import join_route, normalize_path, normalize_prefix


@pytest.mark.parametrize("prefix", ["v1", "/v1", "v1/", "/v1/", "V1", "/Api2/", "x"])
def test_valid_prefix_gains_leading_and_trailing_slash(prefix):
    normalized = normalize_prefix(prefix, require_trailing_slash=True)
    assert normalized.startswith("/")
    assert normalized.endswith("/")
    assert normalized == normalized.lower()


def test_prefix_without_trailing_requirement_keeps_shape():
    assert normalize_prefix("health", require_trailing_slash=False) == "/health"
    assert normalize_prefix("/health/", require_trailing_slash=False) == "/health/"


@pytest.mark.parametrize("prefix", ["", "/", "//", "1v", "v-1", "v1//", "a/b", "v 1"])
def test_invalid_prefix_raises(prefix):
    with pytest.raises(InvalidPrefixError) as exc_info:
        normalize_prefix(prefix, require_trailing_slash=True)
    assert exc_info.value.code == "INVALID_PREFIX"


def test_invalid_prefix_is_configuration_error():
    with pytest.raises(ConfigurationError):
        normalize_prefix("bad prefix", require_trailing_slash=False)


def test_normalize_path_lowercases_literals_only():
    assert normalize_path("/Users/{userId}/Orders") == "/users/{userId}/orders"
    assert normalize_path("/Items/{itemId:int}") == "/items/{itemId:int}"


def test_normalize_path_adds_leading_slash():
    assert normalize_path("ping") == "/ping"
    assert normalize_path("/") == "/"


def test_join_route_collapses_repeated_slashes():
    assert join_route("/api/", "/v1/", "/ping") == "/api/v1/ping"
    assert join_route("/api/", "/health") == "/api/health"


def test_join_route_keeps_trailing_slash_of_last_part():
    assert join_route("/api/", "/v1/", "/items/") == "/api/v1/items/"
    assert join_route("/api/", "/v1/", "/") == "/api/v1/"
