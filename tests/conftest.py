# tests/conftest.py

"""Shared pytest fixtures for all listing_hub tests."""

from collections.abc import Generator
from unittest.mock import patch

import pytest

from src.config.settings import Settings


@pytest.fixture(autouse=True)
def no_batch_pacing() -> Generator[None, None, None]:
    """Zero the inter-chunk pause so batched fetches run instantly."""
    with patch.object(Settings, "IMAGE_BATCH_DELAY", 0.0):
        yield
