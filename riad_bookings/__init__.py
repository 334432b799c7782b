"""Riad di Siena booking webhook service."""

__version__ = "1.0.0"
