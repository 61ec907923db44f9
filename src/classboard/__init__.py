"""Classboard: class website backend with live announcement engagement."""

__version__ = "0.1.0"
