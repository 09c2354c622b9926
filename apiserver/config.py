"""Server Configuration: environment-driven settings and the configuration holder.

Invariants:
    - Every value has an environment default (PORT, DOMAIN, SUBDOMAIN, SCHEME,
      APIPREFIX, HEALTHROUTE, WRITETIMEOUT, READTIMEOUT, EXITTIMEOUT)
    - Explicit values always override the environment
    - Ports lie in [0, 65000]; timeouts are seconds >= 0
    - Specification prefixes are unique through new_specification()
    - A frozen Config (and its specifications) rejects every mutation

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - load_settings() is the single validating constructor; setters re-run it so a
      bad value raises InvalidSettingError and leaves the previous settings intact
"""

import logging
from typing import Any, Awaitable, Callable, Union

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from starlette.requests import Request
from starlette.responses import Response

from apiserver.api.health import health_check
from apiserver.core.errors import (
    ApiServerError, ConfigurationFrozenError, InvalidSettingError,
)
from apiserver.core.normalize_paths import normalize_prefix
from apiserver.core.specification import APISpecification

HealthCheckHandler = Callable[[Request], Union[Response, Awaitable[Response]]]

MAX_PORT = 65000


class ServerSettings(BaseSettings):
    """Listener and routing settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False,
        env_ignore_empty=True, extra="ignore",
    )

    # Listener
    port: int = Field(8080, ge=0, le=MAX_PORT)
    read_timeout: float = Field(
        15, ge=0, validation_alias=AliasChoices("read_timeout", "readtimeout"),
    )
    write_timeout: float = Field(
        15, ge=0, validation_alias=AliasChoices("write_timeout", "writetimeout"),
    )
    exit_timeout: float = Field(
        10, ge=0, validation_alias=AliasChoices("exit_timeout", "exittimeout"),
    )

    # Routing
    domain: str = "localhost"
    subdomain: str = ""  # {subdomain} or www
    scheme: str = "http"
    api_prefix: str = Field(
        "api", validation_alias=AliasChoices("api_prefix", "apiprefix"),
    )
    health_path: str = Field(
        "health", validation_alias=AliasChoices("health_path", "healthroute"),
    )

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("scheme", mode="before")
    @classmethod
    def check_scheme(cls, v: str) -> str:
        v = str(v).lower()
        if v not in ("http", "https"):
            raise ValueError(f"unsupported scheme ({v})")
        return v

    @field_validator("api_prefix", mode="before")
    @classmethod
    def check_api_prefix(cls, v: str) -> str:
        return _prefix_or_value_error(v, require_trailing_slash=True)

    @field_validator("health_path", mode="before")
    @classmethod
    def check_health_path(cls, v: str) -> str:
        return _prefix_or_value_error(v, require_trailing_slash=False)


def _prefix_or_value_error(v: str, require_trailing_slash: bool) -> str:
    # pydantic only turns ValueError into a ValidationError
    try:
        return normalize_prefix(str(v), require_trailing_slash)
    except ApiServerError as e:
        raise ValueError(e.message) from e


def load_settings(**overrides: Any) -> ServerSettings:
    """Build validated settings from the environment plus explicit overrides.

    Raises InvalidSettingError naming the first offending setting.
    """
    try:
        return ServerSettings(**overrides)
    except ValidationError as e:
        first = e.errors()[0]
        setting = ".".join(str(loc) for loc in first["loc"]) or "settings"
        raise InvalidSettingError(setting, first["msg"]) from e


class Config:
    """Mutable builder for a Server: settings, logger, health check, specifications."""

    def __init__(
        self,
        settings: ServerSettings | None = None,
        logger: logging.Logger | None = None,
    ):
        self._settings = settings or load_settings()
        self._logger = logger or logging.getLogger("apiserver")
        self._health_check: HealthCheckHandler = health_check
        self._specs: list[APISpecification] = []
        self._frozen = False

    # ─── Read access ────────────────────────────────────────────

    @property
    def settings(self) -> ServerSettings:
        return self._settings

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def health_check(self) -> HealthCheckHandler:
        return self._health_check

    @property
    def specifications(self) -> tuple[APISpecification, ...]:
        return tuple(self._specs)

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ─── Fluent setters ─────────────────────────────────────────

    def set_logger(self, logger: logging.Logger) -> "Config":
        self._check_mutable()
        self._logger = logger
        return self

    def set_health_check(self, handler: HealthCheckHandler) -> "Config":
        """Override the default {"ok": true} health check."""
        self._check_mutable()
        self._health_check = handler
        return self

    def set_port(self, port: int) -> "Config":
        return self._update(port=port)

    def set_domain(self, domain: str) -> "Config":
        return self._update(domain=domain)

    def set_subdomain(self, subdomain: str) -> "Config":
        return self._update(subdomain=subdomain)

    def set_scheme(self, scheme: str) -> "Config":
        return self._update(scheme=scheme)

    def set_api_prefix(self, prefix: str) -> "Config":
        """Initial path prefix of the API, eg /api/..."""
        return self._update(api_prefix=prefix)

    def set_health_path(self, path: str) -> "Config":
        """Path below the API prefix that serves the health check."""
        return self._update(health_path=path)

    def set_read_timeout(self, seconds: float) -> "Config":
        return self._update(read_timeout=seconds)

    def set_write_timeout(self, seconds: float) -> "Config":
        return self._update(write_timeout=seconds)

    def set_exit_timeout(self, seconds: float) -> "Config":
        """Seconds allowed for a graceful exit."""
        return self._update(exit_timeout=seconds)

    # ─── Specifications ─────────────────────────────────────────

    def new_specification(self, prefix: str) -> APISpecification:
        """Return the specification registered under prefix, creating it if absent."""
        self._check_mutable()
        prefix = normalize_prefix(prefix, require_trailing_slash=True)
        for spec in self._specs:
            if spec.prefix == prefix:
                return spec
        spec = APISpecification(prefix, logger=self._logger)
        self._specs.append(spec)
        return spec

    def add_specification(self, spec: APISpecification) -> "Config":
        """Append a separately built specification as-is.

        Prefix uniqueness is not checked here; Server construction rejects
        duplicates with DuplicatePrefixError.
        """
        self._check_mutable()
        self._specs.append(spec)
        return self

    def freeze(self) -> None:
        self._frozen = True
        for spec in self._specs:
            spec.freeze()

    def _update(self, **changes: Any) -> "Config":
        self._check_mutable()
        try:
            self._settings = load_settings(
                **{**self._settings.model_dump(), **changes},
            )
        except InvalidSettingError as e:
            self._logger.error(
                e.message, extra={"error_code": e.code},
            )
            raise
        return self

    def _check_mutable(self) -> None:
        if self._frozen:
            raise ConfigurationFrozenError("configuration")
