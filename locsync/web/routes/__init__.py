"""Blueprints for the locsync web API."""

from .worker import worker_bp

__all__ = ["worker_bp"]
