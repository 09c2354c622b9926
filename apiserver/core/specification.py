"""API Specification: a prefix plus ordered GET and POST path bindings.

Invariants:
    - Prefix is normalized to /name/ (lower-case, ^/[a-z][a-z0-9]*/$)
    - No path appears twice within the same method list (DuplicatePathError)
    - Paths are case-normalized before comparison and storage
    - Once frozen, no binding can be added (ConfigurationFrozenError)

Design Decisions:
    - Fluent add_* methods return self so bindings chain at configuration time
    - Frozen by the server when it consumes the configuration, bindings are
      read-only from then on
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from starlette.requests import Request
from starlette.responses import Response

from apiserver.core.errors import ConfigurationFrozenError, DuplicatePathError
from apiserver.core.normalize_paths import normalize_path, normalize_prefix
from apiserver.core.path_vars import PathVars

APIHandler = Callable[
    [PathVars, Request], Union[Response, Awaitable[Response]],
]


@dataclass(frozen=True)
class APIPath:
    """A path template and the handler serving it."""
    path: str
    handler: APIHandler


class APISpecification:
    """Named collection of GET and POST bindings under one prefix."""

    def __init__(self, prefix: str, logger: logging.Logger | None = None):
        self.prefix = normalize_prefix(prefix, require_trailing_slash=True)
        self._logger = logger or logging.getLogger("apiserver")
        self._gets: list[APIPath] = []
        self._posts: list[APIPath] = []
        self._frozen = False

    def __repr__(self) -> str:
        return (
            f"APISpecification(prefix={self.prefix!r}, "
            f"gets={len(self._gets)}, posts={len(self._posts)})"
        )

    @property
    def gets(self) -> tuple[APIPath, ...]:
        return tuple(self._gets)

    @property
    def posts(self) -> tuple[APIPath, ...]:
        return tuple(self._posts)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add_get_path(self, path: str, handler: APIHandler) -> "APISpecification":
        """Add a GET binding. Raises DuplicatePathError if already present."""
        self._add(self._gets, "GET", path, handler)
        return self

    def add_post_path(self, path: str, handler: APIHandler) -> "APISpecification":
        """Add a POST binding. Raises DuplicatePathError if already present."""
        self._add(self._posts, "POST", path, handler)
        return self

    def freeze(self) -> None:
        self._frozen = True

    def _add(
        self, bindings: list[APIPath], method: str, path: str, handler: Any,
    ) -> None:
        if self._frozen:
            raise ConfigurationFrozenError(f"specification {self.prefix}")
        path = normalize_path(path)
        if any(b.path == path for b in bindings):
            self._logger.error(
                f"duplicate {method} path: {path}",
                extra={"prefix": self.prefix, "path": path, "method": method},
            )
            raise DuplicatePathError(method, path, self.prefix)
        bindings.append(APIPath(path=path, handler=handler))
