"""Driver registry.

``DriverFactory`` maps the ``ClientOptions.driver`` value to a
:class:`~docql.drivers.base.Driver` class, mirroring
:class:`~docql.compile.registry.CompilerFactory` for compilers.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import ClassVar

from docql.drivers.base import Driver
from docql.drivers.profiler import QueryProfiler
from docql.errors import ConfigurationError
from docql.schema.config import ConnectionConfig


class DriverFactory:
    """Registry mapping driver names to :class:`Driver` classes."""

    _drivers: ClassVar[dict[str, type[Driver]]] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[type[Driver]], type[Driver]]:
        """Decorator that registers a driver class under ``name``."""

        def decorator(driver_cls: type[Driver]) -> type[Driver]:
            cls._drivers[name] = driver_cls
            return driver_cls

        return decorator

    @classmethod
    def register_class(cls, name: str, driver_cls: type[Driver]) -> None:
        cls._drivers[name] = driver_cls

    @classmethod
    def create(
        cls,
        name: str,
        config: ConnectionConfig,
        profiler: QueryProfiler | None = None,
    ) -> Driver:
        """Instantiate the driver registered for ``name``.

        Raises:
            ConfigurationError: If no driver is registered for ``name``.
        """
        driver_cls = cls._drivers.get(name)
        if driver_cls is None:
            raise ConfigurationError(
                f"Unsupported driver: '{name}'. Registered drivers: {sorted(cls._drivers)}."
            )
        return driver_cls(config, profiler)

    @classmethod
    def registered_drivers(cls) -> list[str]:
        return sorted(cls._drivers)
