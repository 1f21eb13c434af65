# src/chatmemory/collaborators.py
"""
Collaborator interfaces consumed by the conversation memory manager.

The manager never talks to a tokenizer, a summarization model or a language
detector directly; it receives implementations of the abstract classes below
at construction time. This keeps the context packing algorithm testable with
deterministic fakes.

Bundled implementations:
    - CharRatioTokenEstimator: ~4 characters per token, rounded up.
    - TiktokenEstimator: exact counts via tiktoken (``cl100k_base``).
    - HangulRatioLanguageDetector: "ko" when enough Hangul is present, else "en".

No summarizer is bundled; callers inject one backed by their LLM of choice.
"""

import abc
import logging
import math
import re
from typing import Dict, List, Type

import tiktoken

from .exceptions import ConfigError
from .models import Turn

logger = logging.getLogger(__name__)

_HANGUL_RE = re.compile(r"[ᄀ-ᇿ㄰-㆏가-힣]")
_WHITESPACE_RE = re.compile(r"\s")


class TokenEstimator(abc.ABC):
    """Maps arbitrary text to an integer token count."""

    @abc.abstractmethod
    def estimate_tokens(self, text: str) -> int:
        """
        Estimate the number of tokens in ``text``.

        Implementations may raise for inputs they cannot handle; the memory
        manager treats such failures as per-item and keeps going.
        """
        pass


class Summarizer(abc.ABC):
    """Condenses an ordered list of turns into a summary text."""

    @abc.abstractmethod
    async def summarize(self, turns: List[Turn]) -> str:
        """
        Produce a summary for ``turns`` (chronological order).

        Args:
            turns: The window of turns to condense, oldest first.

        Returns:
            The summary text. It replaces any previous summary wholesale.
        """
        pass


class LanguageDetector(abc.ABC):
    """Maps text to a language code."""

    @abc.abstractmethod
    def detect_language(self, text: str) -> str:
        pass


class CharRatioTokenEstimator(TokenEstimator):
    """
    Character-based token estimation.

    Uses ``ceil(len(text) / chars_per_token)``, a rough heuristic that holds up
    reasonably for mixed Korean/English text.
    """

    def __init__(self, chars_per_token: int = 4) -> None:
        if chars_per_token <= 0:
            raise ConfigError(f"chars_per_token must be positive, got {chars_per_token}")
        self._chars_per_token = chars_per_token

    def estimate_tokens(self, text: str) -> int:
        if not isinstance(text, str):
            raise TypeError(f"Cannot estimate tokens for {type(text).__name__}")
        return math.ceil(len(text) / self._chars_per_token)


class TiktokenEstimator(TokenEstimator):
    """Token counter using tiktoken (``cl100k_base`` encoding by default)."""

    def __init__(self, encoding_name: str = "cl100k_base") -> None:
        self._encoding = tiktoken.get_encoding(encoding_name)

    def estimate_tokens(self, text: str) -> int:
        return len(self._encoding.encode(text))


class HangulRatioLanguageDetector(LanguageDetector):
    """
    Detects Korean by the share of Hangul among non-whitespace characters.

    Anything that is not Korean is reported as ``fallback`` ("en").
    """

    def __init__(self, threshold: float = 0.1, fallback: str = "en") -> None:
        self._threshold = threshold
        self._fallback = fallback

    def detect_language(self, text: str) -> str:
        korean_chars = len(_HANGUL_RE.findall(text))
        total_chars = len(_WHITESPACE_RE.sub("", text))
        if total_chars > 0 and korean_chars / total_chars > self._threshold:
            return "ko"
        return self._fallback


TOKEN_ESTIMATOR_MAP: Dict[str, Type[TokenEstimator]] = {
    "chars": CharRatioTokenEstimator,
    "tiktoken": TiktokenEstimator,
}


def create_token_estimator(name: str = "chars") -> TokenEstimator:
    """
    Instantiate a bundled token estimator by its configured name.

    Raises:
        ConfigError: If ``name`` is not one of TOKEN_ESTIMATOR_MAP's keys.
    """
    estimator_cls = TOKEN_ESTIMATOR_MAP.get(name.lower())
    if estimator_cls is None:
        raise ConfigError(f"Unsupported token estimator: '{name}'. "
                          f"Available estimators: {list(TOKEN_ESTIMATOR_MAP.keys())}")
    logger.debug("Creating token estimator '%s'", name)
    return estimator_cls()
