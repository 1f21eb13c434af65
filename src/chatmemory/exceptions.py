# src/chatmemory/exceptions.py
"""
Custom exceptions for the chatmemory library.

This module defines the exception hierarchy used across chatmemory. Store
implementations raise the storage errors below; the conversation memory
manager catches every collaborator failure at its boundary and surfaces it
as a single :class:`ConversationError` carrying the originating component,
the operation code, an HTTP-like status class and the underlying cause.
"""

from enum import Enum
from typing import Optional


class ChatMemoryError(Exception):
    """Base class for all chatmemory specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in chatmemory."):
        super().__init__(message)

class ConfigError(ChatMemoryError):
    """Raised for errors related to configuration loading or validation."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)

class StorageError(ChatMemoryError):
    """Base class for errors related to storage operations."""
    def __init__(self, message: str = "Storage error."):
        super().__init__(message)

class SessionStorageError(StorageError):
    """Raised for errors specific to session and turn storage operations."""
    def __init__(self, message: str = "Session storage error."):
        super().__init__(message)


class OperationCode(str, Enum):
    """One code per public operation of the conversation memory manager."""
    INIT_SESSION = "init_session"
    RESET_SESSION = "reset_session"
    UPDATE_LANGUAGE = "update_language"
    SAVE_MESSAGE = "save_message"
    GET_MESSAGES = "get_messages"
    LOAD_CONTEXT = "load_context"
    BUILD_CONTEXT = "build_context"
    GET_STATS = "get_stats"
    CHECK_ACTIVITY = "check_activity"
    FORCE_SUMMARY = "force_summary"


class ConversationError(ChatMemoryError):
    """
    The single error kind surfaced by ConversationMemoryManager.

    Attributes:
        component: Name of the component that failed (e.g. "conversation").
        operation: The OperationCode of the public method that failed.
        status_code: HTTP-like status class (400 invalid input, 500 collaborator failure).
        cause: The underlying exception, if any. Also chained as ``__cause__``.
    """
    def __init__(
        self,
        message: str = "Conversation memory error.",
        component: str = "conversation",
        operation: OperationCode = OperationCode.INIT_SESSION,
        status_code: int = 500,
        cause: Optional[BaseException] = None,
    ):
        self.component = component
        self.operation = OperationCode(operation)
        self.status_code = status_code
        self.cause = cause
        detail = f" Cause: {cause}" if cause is not None else ""
        super().__init__(f"[{component}:{self.operation.value}] {message}{detail}")

    @property
    def is_client_error(self) -> bool:
        """True for 4xx status classes (caller supplied invalid input)."""
        return 400 <= self.status_code < 500
