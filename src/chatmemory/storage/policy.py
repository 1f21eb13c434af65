# src/chatmemory/storage/policy.py
"""
Summary trigger policy shared by the bundled conversation stores.

A new summary is due once enough turns have been appended since the last
one, or once the turns appended since then carry enough text. Only the most
recent ``window_size`` of those turns count towards the character total, the
same window the summarizer will be handed.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable


@dataclass(frozen=True)
class SummaryTriggerPolicy:
    trigger_turns: int = 10
    trigger_chars: int = 4000
    window_size: int = 10

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "SummaryTriggerPolicy":
        return cls(
            trigger_turns=int(config.get("summary_trigger_turns", cls.trigger_turns)),
            trigger_chars=int(config.get("summary_trigger_chars", cls.trigger_chars)),
            window_size=int(config.get("summary_window_size", cls.window_size)),
        )

    def char_window(self, turns_since_summary: int) -> int:
        """How many of the latest turns count towards the character threshold."""
        return max(0, min(turns_since_summary, self.window_size))

    def should_trigger(self, turns_since_summary: int, window_texts: Iterable[str]) -> bool:
        if turns_since_summary <= 0:
            return False
        if turns_since_summary >= self.trigger_turns:
            return True
        return sum(len(text) for text in window_texts) >= self.trigger_chars
