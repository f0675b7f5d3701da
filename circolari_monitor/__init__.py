"""
School circulars monitoring service package.

This package contains modules for reading the school's circulars archive,
fingerprinting the published documents, remembering what was already
announced and posting new circulars and document updates to a Telegram
channel.  See DESIGN.md for details.
"""

__version__ = "1.3.0"

__all__ = [
    "config",
    "db",
    "delivery",
    "detector",
    "fingerprint",
    "formatting",
    "main",
    "models",
    "notifier",
    "ports",
    "scraper",
    "utils",
]
