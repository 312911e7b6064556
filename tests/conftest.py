"""Pytest fixtures for signal-sdk tests."""

import logging
from collections.abc import Generator

import pytest
import structlog

from signal_sdk.core.config import ClientConfig
from tests.helpers import FakeTransportFactory


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test.

    This ensures test isolation for logging configuration.
    """
    from signal_sdk.cli import helpers as cli_helpers

    original_level = cli_helpers._log_config.level
    original_format = cli_helpers._log_config.format
    original_file = cli_helpers._log_config.file
    original_config_path = cli_helpers._config_path

    cli_helpers.reset_logging_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    cli_helpers.reset_logging_state()
    cli_helpers._log_config.level = original_level
    cli_helpers._log_config.format = original_format
    cli_helpers._log_config.file = original_file
    cli_helpers._config_path = original_config_path
    structlog.reset_defaults()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)


@pytest.fixture
def client_config() -> ClientConfig:
    """Config with the slow parts (retry, spacing, reconnect delays) turned down."""
    return ClientConfig(
        account="+15550000001",
        request_timeout=1.0,
        enable_retry=False,
        min_request_interval=0,
        reconnect_base_delay=0.01,
    )


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    return FakeTransportFactory()
