# Test configuration

import pytest
import os
import sys

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


@pytest.fixture
def test_settings():
    """Override settings for testing"""
    from src.config.settings import Settings
    return Settings(
        max_json_size=1024 * 1024,
        table_prefix="data_",
        log_json=False,
    )


@pytest.fixture
def flat_users():
    """Two regular records that classify as SQL."""
    return [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}]


@pytest.fixture
def users_with_address():
    """Records with one level of object nesting."""
    return [
        {"id": 1, "name": "Alice", "address": {"city": "NYC", "zip": "10001"}},
        {"id": 2, "name": "Bob", "address": {"city": "LA"}},
    ]
