# src/chatmemory/memory/summarization.py
"""
Rolling-summary step.

``run_summary_step`` asks the store whether a summary is due, condenses the
latest window of turns with the injected summarizer and stores the result.
It never raises: the outcome, including any exception, is returned as a
SummaryOutcome for the caller to log. ``summarize_window`` is the unguarded
variant used when the caller wants failures to propagate.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..collaborators import Summarizer
from ..storage.base_store import ConversationStore

logger = logging.getLogger(__name__)


class SummaryStatus(str, Enum):
    SKIPPED = "skipped"
    UPDATED = "updated"
    FAILED = "failed"


@dataclass(frozen=True)
class SummaryOutcome:
    chat_id: str
    status: SummaryStatus
    summary: Optional[str] = None
    error: Optional[BaseException] = None

    def log(self) -> None:
        """Report the outcome through the module logger."""
        if self.status is SummaryStatus.FAILED:
            logger.error(f"Summary generation failed for chat '{self.chat_id}'; previous summary kept.",
                         exc_info=self.error)
        elif self.status is SummaryStatus.UPDATED:
            logger.info(f"Summary updated for chat '{self.chat_id}' ({len(self.summary or '')} chars).")
        else:
            logger.debug(f"Summary not due for chat '{self.chat_id}'.")


async def summarize_window(
    store: ConversationStore,
    summarizer: Summarizer,
    chat_id: str,
    window_size: int,
) -> Optional[str]:
    """
    Summarize the latest ``window_size`` turns and persist the result.

    Returns:
        The new summary, or None when there were no turns to summarize.
    """
    window = await store.get_recent_turns(chat_id, window_size)
    if not window:
        return None
    summary = await summarizer.summarize(window)
    await store.update_summary(chat_id, summary)
    return summary


async def run_summary_step(
    store: ConversationStore,
    summarizer: Summarizer,
    chat_id: str,
    window_size: int,
) -> SummaryOutcome:
    """Trigger check plus summarization, with every failure captured."""
    try:
        if not await store.should_trigger_summary(chat_id):
            return SummaryOutcome(chat_id, SummaryStatus.SKIPPED)
        summary = await summarize_window(store, summarizer, chat_id, window_size)
    except Exception as e:
        return SummaryOutcome(chat_id, SummaryStatus.FAILED, error=e)
    if summary is None:
        return SummaryOutcome(chat_id, SummaryStatus.SKIPPED)
    return SummaryOutcome(chat_id, SummaryStatus.UPDATED, summary=summary)
