"""Root pytest configuration for all tests."""

from __future__ import annotations

# Redundant with asyncio_mode in pyproject.toml but keeps plain `pytest tests/x.py` runs working
pytest_plugins = ("pytest_asyncio",)
