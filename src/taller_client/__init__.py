"""Data access and cache layer for the taller workshop management API."""

__version__ = "0.1.0"
