"""Shared pytest fixtures."""

import pytest

from propatch.core.registry import PatchRegistry, default_registry


@pytest.fixture(autouse=True)
def clean_default_registry():
    """Keep patches created by one test out of the next test's default registry."""
    yield
    default_registry.clear()


@pytest.fixture
def registry():
    """A fresh, isolated registry."""
    return PatchRegistry()
