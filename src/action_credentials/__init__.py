"""Credential refresh and repository bootstrap for CI automation agents."""

__version__ = "0.1.0"
