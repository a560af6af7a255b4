"""Question answering over recent classified feedback.

Builds a short context from the newest processed rows, asks the LLM, and
caches the answer.  When the LLM fails, times out, or returns nothing, a
keyword rule over the query produces a count-based answer instead.

Every exchange is appended to the store's ``chat_log``.  A failure to
write the log is logged and otherwise ignored; a failure to read the
context is not, and propagates as ``StoreUnavailableError``.
"""

from __future__ import annotations

import asyncio
import hashlib

import structlog

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.feedback_store import IFeedbackStore
from src.interfaces.llm_provider import ILLMProvider
from src.models.feedback import FeedbackRecord, Sentiment
from src.utils.errors import StoreUnavailableError
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)


def _build_context(records: list[FeedbackRecord]) -> str:
    return "\n".join(
        f'Feedback: "{r.content}" (Sentiment: '
        f"{r.sentiment.value if r.sentiment else 'unknown'}, Topics: {r.topics})"
        for r in records
    )


def fallback_answer(query: str, records: list[FeedbackRecord]) -> str:
    """Answer from sentiment counts when the LLM gives nothing usable."""
    lowered = query.lower()
    if "complaint" in lowered or "negative" in lowered:
        count = sum(1 for r in records if r.sentiment is Sentiment.NEGATIVE)
        return (
            f"Based on recent feedback, there are {count} negative feedback items. "
            "Common issues include bugs, crashes, and feature requests."
        )
    if "positive" in lowered or "good" in lowered:
        count = sum(1 for r in records if r.sentiment is Sentiment.POSITIVE)
        return (
            f"Based on recent feedback, there are {count} positive feedback items. "
            "Users appreciate improvements and new features."
        )
    return (
        f"I found {len(records)} recent feedback items. Use specific questions "
        "about sentiment, topics, or trends for better insights."
    )


class ChatService:
    """Answers free-text questions about the stored feedback.

    Parameters
    ----------
    llm:
        LLM provider, or ``None`` to always use the keyword answers.
    feedback_store:
        Source of the recent processed rows and sink for the chat log.
    cache:
        Optional answer cache keyed by query and context.
    context_limit:
        How many recent processed rows go into the prompt.
    timeout:
        Seconds to wait for the LLM.
    """

    def __init__(
        self,
        llm: ILLMProvider | None,
        feedback_store: IFeedbackStore,
        cache: ICacheProvider | None = None,
        context_limit: int = 10,
        timeout: float = 25.0,
        temperature: float = 0.3,
        max_tokens: int = 512,
        cache_ttl: int | None = None,
    ) -> None:
        self._llm = llm
        self._store = feedback_store
        self._cache = cache
        self._context_limit = context_limit
        self._timeout = timeout
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._cache_ttl = cache_ttl

    async def answer(self, query: str) -> str:
        records = await self._store.recent_processed(limit=self._context_limit)
        context = _build_context(records)

        # Keyed on the context too, so new classifications invalidate answers.
        cache_key = self._cache_key(query, context)
        if self._cache is not None:
            cached = await self._cache.get(cache_key)
            if cached:
                logger.debug("chat_cache_hit", query=query[:50])
                await self._log_exchange(query, cached)
                return cached

        response = await self._ask_llm(query, context)
        if response is None:
            response = fallback_answer(query, records)
            logger.info("chat_fallback_used", query=query[:80], context_rows=len(records))
        elif self._cache is not None:
            await self._cache.set(cache_key, response, ttl=self._cache_ttl)

        await self._log_exchange(query, response)
        return response

    async def _ask_llm(self, query: str, context: str) -> str | None:
        if self._llm is None:
            return None
        system_prompt = (
            "You are a helpful assistant analyzing customer feedback. "
            f"Here's recent feedback data:\n\n{context}\n\n"
            "Answer questions about this feedback data."
        )
        try:
            answer = await asyncio.wait_for(
                self._llm.complete(
                    system_prompt=system_prompt,
                    user_prompt=query,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("chat_llm_timeout", timeout=self._timeout)
            return None
        except Exception as exc:
            logger.warning("chat_llm_failed", error_type=type(exc).__name__, error=str(exc))
            return None
        answer = (answer or "").strip()
        return answer or None

    async def _log_exchange(self, query: str, response: str) -> None:
        try:
            await self._store.record_chat_exchange(query, response)
        except StoreUnavailableError as exc:
            logger.warning("chat_log_write_failed", error=str(exc))

    @staticmethod
    def _cache_key(query: str, context: str) -> str:
        digest = hashlib.sha256(f"{query}\x00{context}".encode()).hexdigest()
        return f"chat:{digest}"
