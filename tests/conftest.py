"""Pytest configuration and fixtures."""

import pytest

from tradestats.config import clear_settings_cache


@pytest.fixture
def sample_wallet_address() -> str:
    """Sample Solana wallet address for testing."""
    return "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    clear_settings_cache()
    yield
    clear_settings_cache()
