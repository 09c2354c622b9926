"""Path Variables: typed accessors over the parameters a route extracted.

Invariants:
    - A missing variable always yields the caller's default, never an error
    - get_int accepts only signed 32-bit values, get_int64 only signed 64-bit
    - Numeric text is an optional sign followed by decimal digits, nothing else
    - get() dispatches on the default's type; unknown types are a programming error
"""

import re
from typing import Any, Mapping

from apiserver.core.errors import (
    PathVariableConversionError, UnsupportedPathVariableTypeError,
)

_INTEGER_PATTERN = re.compile(r"^[+-]?[0-9]+$")

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1


class PathVars:
    """Read-only view of a request's path variables."""

    def __init__(self, values: Mapping[str, Any] | None = None):
        self._values = dict(values or {})

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"PathVars({self._values!r})"

    def as_dict(self) -> dict[str, str]:
        return {k: str(v) for k, v in self._values.items()}

    def get_string(self, name: str, default: str = "") -> str:
        if name not in self._values:
            return default
        return str(self._values[name])

    def get_int(self, name: str, default: int = 0) -> int:
        """Signed 32-bit integer variable."""
        return self._parse_int(name, default, INT32_MIN, INT32_MAX, "int32")

    def get_int64(self, name: str, default: int = 0) -> int:
        """Signed 64-bit integer variable."""
        return self._parse_int(name, default, INT64_MIN, INT64_MAX, "int64")

    def get(self, name: str, default: Any) -> Any:
        """Return the variable converted to the type of ``default``.

        str defaults go through get_string, int defaults through get_int64
        (Python ints are unbounded, so the wider range applies). bool is
        rejected even though it subclasses int.
        """
        if isinstance(default, bool):
            raise UnsupportedPathVariableTypeError(name, type(default).__name__)
        if isinstance(default, str):
            return self.get_string(name, default)
        if isinstance(default, int):
            return self.get_int64(name, default)
        raise UnsupportedPathVariableTypeError(name, type(default).__name__)

    def _parse_int(
        self, name: str, default: int, low: int, high: int, type_name: str,
    ) -> int:
        if name not in self._values:
            return default
        raw = self._values[name]
        # Starlette's {name:int} convertor hands over an int already
        if isinstance(raw, int) and not isinstance(raw, bool):
            value = raw
        else:
            text = str(raw)
            if not _INTEGER_PATTERN.match(text):
                raise PathVariableConversionError(name, text, type_name)
            value = int(text)
        if not low <= value <= high:
            raise PathVariableConversionError(name, str(raw), type_name)
        return value
