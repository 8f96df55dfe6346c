"""Compiler registry (Open/Closed Principle).

``CompilerFactory``
    Central registry for :class:`~docql.compile.base.SQLCompiler`
    implementations.  Register a new compiler once; the client and the
    drivers look it up by dialect name.

Usage::

    from docql.compile.registry import CompilerFactory

    @CompilerFactory.register("mariadb")
    class MariaDBCompiler(MySQLCompiler):
        ...
"""

from __future__ import annotations

from collections.abc import Callable
from typing import ClassVar

from docql.compile.base import SQLCompiler
from docql.errors import ConfigurationError

#: Dialect whose path-extraction form is used for unrecognised names.
FALLBACK_DIALECT = "mysql"


class CompilerFactory:
    """Registry mapping dialect names to :class:`SQLCompiler` classes.

    Example::

        compiler = CompilerFactory.create("postgres")
    """

    _compilers: ClassVar[dict[str, type[SQLCompiler]]] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[type[SQLCompiler]], type[SQLCompiler]]:
        """Decorator that registers a compiler class under ``name``."""

        def decorator(compiler_cls: type[SQLCompiler]) -> type[SQLCompiler]:
            cls._compilers[name] = compiler_cls
            return compiler_cls

        return decorator

    @classmethod
    def register_class(cls, name: str, compiler_cls: type[SQLCompiler]) -> None:
        """Register a compiler class without using the decorator form."""
        cls._compilers[name] = compiler_cls

    @classmethod
    def create(cls, name: str) -> SQLCompiler:
        """Instantiate the compiler registered for ``name``.

        Raises:
            ConfigurationError: If no compiler is registered for ``name``.
        """
        compiler_cls = cls._compilers.get(name)
        if compiler_cls is None:
            registered = sorted(cls._compilers)
            raise ConfigurationError(
                f"Unsupported dialect: '{name}'. Registered dialects: {registered}."
            )
        return compiler_cls()

    @classmethod
    def resolve(cls, dialect: str | SQLCompiler) -> SQLCompiler:
        """Return a compiler for ``dialect`` without ever raising.

        Accepts an existing compiler instance unchanged.  Unknown names get
        the mysql path-extraction form.
        """
        if isinstance(dialect, SQLCompiler):
            return dialect
        compiler_cls = cls._compilers.get(dialect) or cls._compilers[FALLBACK_DIALECT]
        return compiler_cls()

    @classmethod
    def registered_dialects(cls) -> list[str]:
        """Return the sorted list of registered dialect names."""
        return sorted(cls._compilers)
