"""
Shared pytest fixtures.
"""

import pytest

from src.currency.tables import CurrencyTables, load_tables
from src.utils.config_loader import AppConfig, PathsConfig
from tests.fixtures.currency_mocks import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    """Manually advanced clock."""
    return FakeClock()


@pytest.fixture
def tables() -> CurrencyTables:
    """Packaged currency tables."""
    return load_tables()


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """Default configuration with stores under a temporary directory."""
    return AppConfig(
        paths=PathsConfig(data_dir=str(tmp_path), logs_dir=str(tmp_path / "logs"))
    )
