"""Catalog and scheduling engine for a vocabulary drill chat bot."""

__version__ = "0.3.0"
