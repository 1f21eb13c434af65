# src/chatmemory/memory/context_builder.py
"""
Token-budgeted packing of a summary and recent turns.

This module holds the pure part of memory-context assembly: given the session
summary, the recent turns (oldest first) and a token estimator, it decides
which turns fit the budget. It performs no I/O, so it can be exercised with
deterministic fake estimators.

Packing policy is strict recency. Turns are walked newest to oldest and the
walk stops at the first turn that does not fit; an older, smaller turn is
never pulled in past a newer one that was rejected.
"""

import logging
from typing import List, Optional, Sequence

from ..collaborators import TokenEstimator
from ..models import MemoryContext, Turn

logger = logging.getLogger(__name__)


def _summary_cost(summary: str, estimator: TokenEstimator) -> int:
    try:
        return estimator.estimate_tokens(summary)
    except Exception as e:
        logger.warning(f"Token estimation failed for summary; counting it as 0 tokens: {e}")
        return 0


def pack_memory_context(
    summary: Optional[str],
    turns: Sequence[Turn],
    estimator: TokenEstimator,
    token_budget: int,
) -> MemoryContext:
    """
    Assemble a MemoryContext within ``token_budget``.

    Args:
        summary: The session's rolling summary, if any. Always included,
            even when its cost alone exceeds the budget.
        turns: Candidate turns in chronological order (oldest first).
        estimator: Token estimator used for the summary and each turn.
        token_budget: Maximum tokens for summary plus turns (>= 0).

    Returns:
        MemoryContext with the included turns in chronological order.
        A turn whose estimate raises is left out, recorded in
        ``skipped_message_ids`` and the walk continues with the next one.
    """
    token_count = _summary_cost(summary, estimator) if summary else 0

    included: List[Turn] = []
    skipped: List[str] = []
    for turn in reversed(turns):
        try:
            cost = estimator.estimate_tokens(turn.text)
        except Exception as e:
            logger.warning(f"Token estimation failed for turn {turn.message_id}; excluding it: {e}")
            skipped.append(turn.message_id or "")
            continue

        if token_count + cost > token_budget:
            logger.debug(f"Turn {turn.message_id} ({cost} tokens) does not fit "
                         f"({token_count}/{token_budget}); stopping.")
            break
        included.append(turn)
        token_count += cost

    included.reverse()
    return MemoryContext(
        summary=summary,
        recent_messages=included,
        token_count=token_count,
        token_budget=token_budget,
        skipped_message_ids=skipped,
    )
