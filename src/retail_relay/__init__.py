"""Retail Relay e-commerce API."""

from .api import app

__all__ = ["app"]
