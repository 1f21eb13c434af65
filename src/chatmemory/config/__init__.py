# src/chatmemory/config/__init__.py
"""
Configuration module for the chatmemory library.

Configuration files:
    - TOML file with a ``[memory]`` section, passed explicitly or via
      ``CHATMEMORY_CONFIG_PATH``

Environment variables:
    - Prefix: CHATMEMORY_
    - Nested keys use double underscores: CHATMEMORY_STORAGE__TYPE
"""

from .models import LoggingConfig, MemoryConfig, StorageConfig, load_memory_config

__all__ = ["LoggingConfig", "MemoryConfig", "StorageConfig", "load_memory_config"]
