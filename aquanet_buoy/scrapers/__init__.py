from __future__ import annotations

"""Scrapers package for the buoy dashboard page source."""

__all__ = [
    "dashboard",
]
