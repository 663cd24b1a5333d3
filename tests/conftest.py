"""Test configuration and fixtures."""

import pytest

from image_trust_webhook.config import NotaryConfig, ServiceConfig


@pytest.fixture
def notary_config():
    """Notary configuration fixture."""
    return NotaryConfig(url="https://notary.example.com", timeout=5)


@pytest.fixture
def service_config(notary_config):
    """Service configuration with one allow-listed prefix."""
    return ServiceConfig(notary=notary_config, allowed_registries=("allowed.io/trusted/",))


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring live services"
    )
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")
