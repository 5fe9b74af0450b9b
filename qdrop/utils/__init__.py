"""Utilities for qdrop module."""
from .events import EventEmitter

__all__ = ["EventEmitter"]
