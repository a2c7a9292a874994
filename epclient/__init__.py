"""Resilient data-access client for the European Parliament Open Data API."""

from .clients.facade import EuropeanParliamentClient
from .config import Settings

__all__ = ["EuropeanParliamentClient", "Settings"]
