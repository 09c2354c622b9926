"""Router Composition: merges specifications into one FastAPI application.

Invariants:
    - GET routes match only GET (HEAD is not implied) on the configured scheme
    - POST routes additionally require a Content-Type matching application/json
    - Scheme or content-type mismatch is "no match" (404); method mismatch is 405
    - Every specification prefix registers exactly once (DuplicatePrefixError)
    - Routes live at {apiPrefix}{specPrefix}{path}; health at {apiPrefix}{healthPath}
    - Non-localhost domains scope every route under Host({subdomain}.{domain})

Design Decisions:
    - Starlette Route subclass over FastAPI APIRoute: handlers take PathVars and the
      raw Request, no dependency injection or response models involved
    - Routes appended to app.router directly: include_router would rebuild them
      through add_api_route and drop the scheme/content-type filters
"""

import functools
import inspect
import re
from typing import Any

from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import BaseRoute, Host, Match, Route, Router
from starlette.types import Scope

from apiserver.api.error_handlers import register_error_handlers
from apiserver.config import Config
from apiserver.core.errors import DuplicatePrefixError
from apiserver.core.normalize_paths import join_route
from apiserver.core.path_vars import PathVars
from apiserver.core.specification import APIHandler
from apiserver.infrastructure.timeouts import TimeoutMiddleware

LOOPBACK_DOMAIN = "localhost"
JSON_CONTENT_TYPE = re.compile(r"application/json")


class FilteredRoute(Route):
    """Route that also filters on request scheme and, optionally, JSON bodies."""

    def __init__(
        self,
        path: str,
        endpoint: Any,
        *,
        method: str,
        scheme: str,
        require_json: bool = False,
        name: str | None = None,
    ):
        super().__init__(path, endpoint, methods=[method], name=name)
        # starlette adds HEAD to every GET route
        self.methods = {method}
        self.scheme = scheme
        self.require_json = require_json

    def matches(self, scope: Scope) -> tuple[Match, Scope]:
        match, child_scope = super().matches(scope)
        if match is Match.NONE or not self.accepts(scope):
            return Match.NONE, {}
        return match, child_scope

    def accepts(self, scope: Scope) -> bool:
        if scope.get("scheme", "http") != self.scheme:
            return False
        if self.require_json:
            content_type = Headers(scope=scope).get("content-type", "")
            return JSON_CONTENT_TYPE.search(content_type) is not None
        return True


def bind_handler(handler: APIHandler):
    """Wrap an APIHandler as a Starlette endpoint passing the path variables.

    Coroutine handlers are awaited, plain functions run in the threadpool.
    """
    is_async = _is_async(handler)

    async def endpoint(request: Request) -> Response:
        path_vars = PathVars(request.path_params)
        if is_async:
            return await handler(path_vars, request)
        return await run_in_threadpool(handler, path_vars, request)

    return endpoint


def _is_async(handler: Any) -> bool:
    while isinstance(handler, functools.partial):
        handler = handler.func
    return inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
        getattr(handler, "__call__", None),
    )


def build_routes(config: Config) -> list[BaseRoute]:
    """Build the GET tree, the POST tree and the health route, in that order."""
    settings = config.settings
    logger = config.logger
    get_routes: list[BaseRoute] = []
    post_routes: list[BaseRoute] = []

    registered: set[str] = set()
    for spec in config.specifications:
        if spec.prefix in registered:
            logger.error(
                f"attempt to register {spec.prefix} twice",
                extra={"prefix": spec.prefix},
            )
            raise DuplicatePrefixError(spec.prefix)
        registered.add(spec.prefix)

        for binding in spec.gets:
            path = join_route(settings.api_prefix, spec.prefix, binding.path)
            get_routes.append(FilteredRoute(
                path, bind_handler(binding.handler),
                method="GET", scheme=settings.scheme, name=f"GET {path}",
            ))
        for binding in spec.posts:
            path = join_route(settings.api_prefix, spec.prefix, binding.path)
            post_routes.append(FilteredRoute(
                path, bind_handler(binding.handler),
                method="POST", scheme=settings.scheme, require_json=True,
                name=f"POST {path}",
            ))
        logger.debug(
            f"registered {spec.prefix}",
            extra={"prefix": spec.prefix},
        )

    health = join_route(settings.api_prefix, settings.health_path)
    get_routes.append(FilteredRoute(
        health, config.health_check,
        method="GET", scheme=settings.scheme, name="health",
    ))
    return [*get_routes, *post_routes]


def virtual_host(domain: str, subdomain: str) -> str:
    return f"{subdomain}.{domain}" if subdomain else domain


def build_app(config: Config) -> FastAPI:
    """Compose the FastAPI application serving every configured specification."""
    settings = config.settings
    app = FastAPI(
        title="apiserver", openapi_url=None, docs_url=None, redoc_url=None,
    )
    register_error_handlers(app, config.logger)
    app.add_middleware(
        TimeoutMiddleware,
        read_timeout=settings.read_timeout,
        write_timeout=settings.write_timeout,
        logger=config.logger,
    )

    routes = build_routes(config)
    if settings.domain.lower() != LOOPBACK_DOMAIN:
        host = virtual_host(settings.domain, settings.subdomain)
        app.router.routes.append(Host(host, app=Router(routes=routes)))
        config.logger.info(f"routes scoped to host {host}")
    else:
        app.router.routes.extend(routes)
    return app
