"""WSGI server for video metadata and static assets, with SQLite storage."""

__version__ = "0.1.0"

__all__ = ["__version__"]