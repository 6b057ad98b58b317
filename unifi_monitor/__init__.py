"""
UniFi store monitoring service package.

This package contains modules for resolving the store.ui.com catalog
endpoint, fetching category listings, persisting seen products, notifying
Discord and coordinating the polling loop.  See README.md for details.
"""

__all__ = [
    "config",
    "errors",
    "main",
    "notifier",
    "scraper",
    "store",
    "utils",
]
