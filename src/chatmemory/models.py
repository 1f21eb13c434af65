# src/chatmemory/models.py
"""
Core data models for the chatmemory library.

This module defines the Pydantic models used to represent conversation
sessions, the turns exchanged within them, and the bounded memory context
handed to a downstream answer generator. These models keep timestamps in
UTC, validate the session invariants, and serialize cleanly for storage.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

_FALLBACK_FORMATS = ("%Y-%m-%d %H:%M:%S.%f%z", "%Y-%m-%d %H:%M:%S%z", "%Y-%m-%d %H:%M:%S")


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def coerce_utc(v: Any) -> Any:
    """Parse ISO strings and normalise datetimes to timezone-aware UTC."""
    if isinstance(v, str):
        try:
            if v.endswith('Z'):
                v_parsed = datetime.fromisoformat(v[:-1] + '+00:00')
            else:
                v_parsed = datetime.fromisoformat(v)
        except ValueError:
            for fmt in _FALLBACK_FORMATS:
                try:
                    v_parsed = datetime.strptime(v, fmt)
                    break
                except ValueError:
                    continue
            else:
                raise ValueError(f"Invalid datetime format: {v}")
        v = v_parsed
    if isinstance(v, datetime):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)
    return v


class Role(str, Enum):
    """
    Enumeration of the roles a turn can have.
    Only the two conversational parties are stored in the turn log.
    """
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def _missing_(cls, value: object): # type: ignore[misc] # Pydantic uses this signature
        """
        Handles case-insensitive matching; "agent" is accepted as an alias
        for Role.ASSISTANT.
        """
        if isinstance(value, str):
            lower_value = value.strip().lower()
            if lower_value == "agent":
                return cls.ASSISTANT
            for member in cls:
                if member.value == lower_value:
                    return member
        return None


class Session(BaseModel):
    """
    One conversation, keyed by an opaque and stable chat identifier.

    Attributes:
        chat_id: Immutable conversation key.
        lang: Language code of the conversation (e.g. "ko", "en").
        message_count: Number of turns stored since creation or the last reset.
        summary: Rolling summary; present only after a successful summarization.
        last_message_at: When the most recent turn was stored (creation time if none).
        created_at: When the session was created. Survives resets.
        updated_at: When the session was last modified.
    """
    chat_id: str = Field(description="Opaque, stable conversation key.")
    lang: str = Field(description="Language code of the conversation.")
    message_count: int = Field(default=0, ge=0, description="Turns stored since creation or last reset.")
    summary: Optional[str] = Field(default=None, description="Rolling summary text, replaced wholesale.")
    last_message_at: datetime = Field(default_factory=utc_now, description="Timestamp of the latest turn (UTC).")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp (UTC).")
    updated_at: datetime = Field(default_factory=utc_now, description="Last modification timestamp (UTC).")

    class Config:
        """Pydantic model configuration."""
        validate_assignment = True
        json_encoders = {
            datetime: lambda dt: dt.isoformat().replace('+00:00', 'Z')
        }

    @field_validator('chat_id', mode='before')
    @classmethod
    def validate_chat_id(cls, v: Any) -> Any:
        """Chat ids may arrive as integers from chat platforms; store them as text."""
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str) or not v.strip():
            raise ValueError("chat_id must be a non-empty string")
        return v

    @field_validator('lang', mode='before')
    @classmethod
    def normalize_lang(cls, v: Any) -> Any:
        """Language codes are stored lower-cased and stripped."""
        if not isinstance(v, str) or not v.strip():
            raise ValueError("lang must be a non-empty language code")
        return v.strip().lower()

    @field_validator('last_message_at', 'created_at', 'updated_at', mode='before')
    @classmethod
    def ensure_utc_timestamps(cls, v: Any) -> Any:
        """Ensure timestamps are timezone-aware and in UTC."""
        if v is None:
            return utc_now()
        return coerce_utc(v)

    @model_validator(mode='after')
    def check_timestamps(self) -> "Session":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not precede created_at")
        return self

    @property
    def has_summary(self) -> bool:
        return bool(self.summary)

    def touch(self) -> None:
        """Bump updated_at to now."""
        self.updated_at = utc_now()


class Turn(BaseModel):
    """
    A single message exchanged in a conversation. Immutable once stored.

    Attributes:
        message_id: Identifier assigned by the store on append.
        chat_id: Key of the owning session.
        role: Who produced the turn.
        text: The textual content.
        created_at: When the turn was produced (UTC).
        metadata: Opaque key/value data (evidence sources, latency, ...).
    """
    message_id: Optional[str] = Field(default=None, description="Store-assigned identifier.")
    chat_id: str = Field(description="Key of the owning session.")
    role: Role = Field(description="The role of the sender (user or assistant).")
    text: str = Field(description="Textual content of the turn.")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp (UTC).")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Opaque turn metadata.")

    class Config:
        """Pydantic model configuration."""
        frozen = True
        json_encoders = {
            datetime: lambda dt: dt.isoformat().replace('+00:00', 'Z')
        }

    @field_validator('chat_id', mode='before')
    @classmethod
    def validate_chat_id(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str) or not v.strip():
            raise ValueError("chat_id must be a non-empty string")
        return v

    @field_validator('created_at', mode='before')
    @classmethod
    def ensure_utc_timestamp(cls, v: Any) -> Any:
        if v is None:
            return utc_now()
        return coerce_utc(v)

    @field_validator('metadata', mode='before')
    @classmethod
    def default_metadata(cls, v: Any) -> Any:
        return {} if v is None else v


class MemoryContext(BaseModel):
    """
    Token-bounded memory handed to the answer generator.

    ``token_count`` is the summary cost plus the cost of every included turn.
    The summary is always kept, so ``token_count`` may exceed ``token_budget``
    when the summary alone is larger than the budget; the turn window never
    pushes the total past the budget.
    """
    summary: Optional[str] = None
    recent_messages: List[Turn] = Field(default_factory=list)
    token_count: int = 0
    token_budget: int = 0
    skipped_message_ids: List[str] = Field(default_factory=list)

    @property
    def over_budget(self) -> bool:
        return self.token_count > self.token_budget

    def to_prompt_text(self) -> str:
        """Render the summary and turns as a plain transcript block."""
        lines: List[str] = []
        if self.summary:
            lines.append(f"Summary: {self.summary}")
        for turn in self.recent_messages:
            lines.append(f"{Role(turn.role).value}: {turn.text}")
        return "\n".join(lines)


class ConversationStats(BaseModel):
    """Aggregate view of one conversation; all-zero when the session is absent."""
    message_count: int = 0
    has_summary: bool = False
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ConversationContext(BaseModel):
    """Raw session plus recent turns, as read from the store."""
    session: Optional[Session] = None
    recent_messages: List[Turn] = Field(default_factory=list)
    summary: Optional[str] = None
