"""Clients for external services."""

from .clc import ClcClient

__all__ = ["ClcClient"]
