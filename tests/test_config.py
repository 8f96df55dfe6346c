"""Unit tests for client configuration and option models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from docql.errors import ConfigurationError
from docql.schema.config import ClientOptions, ConnectionConfig
from docql.schema.options import CursorOptions, FindOptions

CONFIG = {"user": "app", "database": "app"}


def test_parse_dict():
    opts = ClientOptions.parse({"driver": "mysql", "config": CONFIG, "log_queries": True})
    assert opts.driver == "mysql"
    assert opts.config.host == "localhost"
    assert opts.log_queries
    assert opts.slow_query_threshold_ms == 500
    assert not opts.strict_operators


def test_parse_passes_instances_through():
    opts = ClientOptions(driver="postgres", config=ConnectionConfig(**CONFIG))
    assert ClientOptions.parse(opts) is opts


@pytest.mark.parametrize(
    "raw",
    [
        {"driver": "oracle", "config": CONFIG},
        {"driver": "postgres"},
        {"driver": "postgres", "config": {**CONFIG, "pool_size": 0}},
        {"driver": "postgres", "config": CONFIG, "unknown": 1},
    ],
)
def test_invalid_options_raise_configuration_error(raw):
    with pytest.raises(ConfigurationError) as exc_info:
        ClientOptions.parse(raw)
    assert exc_info.value.code == "CONFIG"
    assert isinstance(exc_info.value.original_error, ValidationError)


def test_explicit_port_and_retries_win():
    cfg = ConnectionConfig(**CONFIG, port=6543, connect_retries=5)
    assert cfg.port_for("postgres") == 6543
    assert cfg.retries_for("mysql") == 5


def test_find_options_reject_bad_sort_direction():
    with pytest.raises(ValidationError):
        FindOptions(sort={"a": 2})
    with pytest.raises(ValidationError):
        FindOptions(limit=-1)


def test_cursor_options_defaults():
    opts = CursorOptions()
    assert (opts.cursor_field, opts.limit, opts.reverse, opts.count) == ("id", 10, False, False)
    assert opts.cursor_value is None
