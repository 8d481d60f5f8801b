"""Supervisory client that mirrors a hospital case-management backend."""

__version__ = "0.1.0"
