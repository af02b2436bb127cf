"""Pytest configuration for HomeWorks QS tests."""

import sys
from pathlib import Path

import pytest

# Add custom_components/homeworks_qs to path so tests can import the
# protocol package and models without Home Assistant
_repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(_repo_root / "custom_components" / "homeworks_qs"))


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "requires_ha: mark test as requiring Home Assistant"
    )
