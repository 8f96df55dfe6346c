"""Pydantic models for client configuration.

The dialect is selected once, at construction time, through the enumerated
``ClientOptions.driver`` value::

    from docql import ClientOptions, ConnectionConfig, DocQL

    db = DocQL(
        ClientOptions(
            driver="postgres",
            config=ConnectionConfig(host="localhost", user="app",
                                    password="secret", database="app"),
            slow_query_threshold_ms=250,
        )
    )
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from docql.errors import ConfigurationError

#: Supported dialect / driver targets.
DialectTarget = Literal["mysql", "postgres"]

_DEFAULT_PORTS: dict[str, int] = {"postgres": 5432, "mysql": 3306}
_DEFAULT_RETRIES: dict[str, int] = {"postgres": 3, "mysql": 1}


class ConnectionConfig(BaseModel):
    """Connection parameters handed to the native driver's pool.

    Attributes:
        host: Database host.
        user: Login user.
        password: Login password.
        database: Database (schema) name.
        port: TCP port; ``None`` picks the dialect default.
        pool_size: Maximum pooled connections.
        min_pool_size: Connections opened eagerly.
        connect_retries: Connection attempts before giving up; ``None``
            picks the dialect default (3 for postgres, 1 for mysql).
        retry_delay: Seconds to wait between attempts.
        connect_timeout: Seconds to wait for the pool to become ready.
    """

    model_config = ConfigDict(extra="forbid")

    host: str = "localhost"
    user: str
    password: str = ""
    database: str
    port: int | None = None
    pool_size: int = Field(default=10, ge=1)
    min_pool_size: int = Field(default=1, ge=0)
    connect_retries: int | None = Field(default=None, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)
    connect_timeout: float = Field(default=30.0, gt=0)

    def port_for(self, dialect: str) -> int:
        return self.port if self.port is not None else _DEFAULT_PORTS.get(dialect, 0)

    def retries_for(self, dialect: str) -> int:
        if self.connect_retries is not None:
            return self.connect_retries
        return _DEFAULT_RETRIES.get(dialect, 1)


class ClientOptions(BaseModel):
    """Top-level options for :class:`~docql.client.DocQL`.

    Attributes:
        driver: Dialect / driver to use.
        config: Connection parameters.
        slow_query_threshold_ms: Statements slower than this are logged at
            WARNING.
        profile_queries: Time statements and log slow / failed ones.
        log_queries: Log every statement at DEBUG.
        strict_operators: Raise on unknown filter / update / stage keys
            instead of skipping them.
    """

    model_config = ConfigDict(extra="forbid")

    driver: DialectTarget
    config: ConnectionConfig
    slow_query_threshold_ms: float = Field(default=500.0, ge=0)
    profile_queries: bool = True
    log_queries: bool = False
    strict_operators: bool = False

    @classmethod
    def parse(cls, raw: ClientOptions | dict[str, Any]) -> ClientOptions:
        """Validate ``raw`` into options, mapping failures to ConfigurationError."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid client options: {exc}", original_error=exc) from exc
