# src/chatmemory/sessions/__init__.py
"""
Session helpers for chatmemory.
"""

from .activity import is_active

__all__ = ["is_active"]
