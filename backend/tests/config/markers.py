"""
Pytest markers and configuration for the barbershop scheduling tests.

These configurations ensure consistent test categorization and discovery
across the test suite.
"""

import pytest


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as API endpoint test")
    config.addinivalue_line("markers", "services: mark test as service layer test")
    config.addinivalue_line("markers", "appointment: mark test as appointment-related")
    config.addinivalue_line("markers", "repositories: mark test as repository test")
    config.addinivalue_line("markers", "loyalty: mark test as loyalty-related")
    config.addinivalue_line("markers", "commission: mark test as commission-related")
    config.addinivalue_line(
        "markers", "concurrency: mark test as exercising concurrent writers"
    )
    config.addinivalue_line("markers", "slow: mark test as slow running")


def pytest_collection_modifyitems(config, items):
    """Modify test items during collection."""
    for item in items:
        # Add markers based on test file location
        if "unit" in str(item.path):
            item.add_marker(pytest.mark.unit)

        if "integration" in str(item.path):
            item.add_marker(pytest.mark.integration)

        if "concurrency" in str(item.path) or "concurrent" in item.name:
            item.add_marker(pytest.mark.concurrency)
            item.add_marker(pytest.mark.slow)
