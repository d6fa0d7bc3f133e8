"""Optimistic collection sync for the course marketplace front end."""

__version__ = "0.1.0"

__all__ = ["__version__"]
