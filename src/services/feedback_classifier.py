"""Sentiment and topic classification for a single feedback item.

The LLM is treated as an opaque classification oracle.  Every call is
bounded by ``asyncio.wait_for``; any failure, timeout, or empty answer
switches to a deterministic keyword heuristic, so neither public method
ever raises.

Design decisions
----------------
- The mapping from oracle text to a label is substring based and checks
  POSITIVE before NEGATIVE, so an answer like "POSITIVE (not NEGATIVE)"
  is positive.
- Topics returned by the oracle are trimmed but otherwise not validated.
- Fallback topics come from a fixed vocabulary, matched as whole words,
  de-duplicated in first-appearance order and capped at three.
"""

from __future__ import annotations

import asyncio
import re

import structlog

from src.interfaces.llm_provider import ILLMProvider
from src.models.feedback import Sentiment, SentimentResult, TopicResult
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

SENTIMENT_SYSTEM_PROMPT = (
    "You are a sentiment analysis expert. Analyze the sentiment of the following "
    "feedback and respond with ONLY one word: POSITIVE, NEGATIVE, or NEUTRAL."
)

TOPICS_SYSTEM_PROMPT = (
    "Extract the main topics from this feedback. "
    "Return only 2-3 comma-separated topics."
)

_ORACLE_SCORES: dict[Sentiment, float] = {
    Sentiment.POSITIVE: 0.8,
    Sentiment.NEGATIVE: 0.2,
    Sentiment.NEUTRAL: 0.5,
}

_POSITIVE_KEYWORDS = ("great", "love", "excellent")
_NEGATIVE_KEYWORDS = ("bug", "crash", "fix")

_TOPIC_PATTERN = re.compile(r"\b(dashboard|api|mobile|pricing|feature|bug|ui|login)\b")
_MAX_FALLBACK_TOPICS = 3
_DEFAULT_TOPIC = "general"


def parse_sentiment_response(text: str) -> SentimentResult:
    """Map a non-empty oracle answer to a label and fixed score."""
    answer = text.strip().upper()
    if "POSITIVE" in answer:
        sentiment = Sentiment.POSITIVE
    elif "NEGATIVE" in answer:
        sentiment = Sentiment.NEGATIVE
    else:
        sentiment = Sentiment.NEUTRAL
    return SentimentResult(sentiment=sentiment, sentiment_score=_ORACLE_SCORES[sentiment])


def fallback_sentiment(content: str) -> SentimentResult:
    """Keyword heuristic used when the oracle gives no usable answer."""
    lowered = content.lower()
    if any(word in lowered for word in _POSITIVE_KEYWORDS):
        return SentimentResult(
            sentiment=Sentiment.POSITIVE, sentiment_score=0.8, used_fallback=True
        )
    if any(word in lowered for word in _NEGATIVE_KEYWORDS):
        return SentimentResult(
            sentiment=Sentiment.NEGATIVE, sentiment_score=0.3, used_fallback=True
        )
    return SentimentResult(sentiment=Sentiment.NEUTRAL, sentiment_score=0.5, used_fallback=True)


def fallback_topics(content: str) -> TopicResult:
    """Whole-word scan for known product areas.

    >>> fallback_topics("Found a bug in the dashboard API").topics
    'bug, dashboard, api'
    """
    seen: list[str] = []
    for match in _TOPIC_PATTERN.findall(content.lower()):
        if match not in seen:
            seen.append(match)
    topics = ", ".join(seen[:_MAX_FALLBACK_TOPICS]) or _DEFAULT_TOPIC
    return TopicResult(topics=topics, used_fallback=True)


class FeedbackClassifier:
    """Runs the two classification calls for one piece of feedback.

    Parameters
    ----------
    llm:
        The oracle.  ``None`` means no provider is configured and every
        call goes straight to the keyword fallbacks.
    timeout:
        Seconds to wait for each oracle call before falling back.
    temperature:
        Sampling temperature passed to the oracle.
    sentiment_max_tokens, topics_max_tokens:
        Response length caps for the two prompts.
    """

    def __init__(
        self,
        llm: ILLMProvider | None,
        timeout: float = 25.0,
        temperature: float = 0.1,
        sentiment_max_tokens: int = 16,
        topics_max_tokens: int = 64,
    ) -> None:
        self._llm = llm
        self._timeout = timeout
        self._temperature = temperature
        self._sentiment_max_tokens = sentiment_max_tokens
        self._topics_max_tokens = topics_max_tokens

    async def analyze_sentiment(self, content: str) -> SentimentResult:
        answer = await self._ask(SENTIMENT_SYSTEM_PROMPT, content, self._sentiment_max_tokens)
        if answer is None:
            result = fallback_sentiment(content)
            logger.info("sentiment_fallback_used", sentiment=result.sentiment.value)
            return result
        return parse_sentiment_response(answer)

    async def extract_topics(self, content: str) -> TopicResult:
        answer = await self._ask(TOPICS_SYSTEM_PROMPT, content, self._topics_max_tokens)
        if answer is None:
            result = fallback_topics(content)
            logger.info("topics_fallback_used", topics=result.topics)
            return result
        return TopicResult(topics=answer)

    async def _ask(self, system_prompt: str, content: str, max_tokens: int) -> str | None:
        """Return the trimmed oracle answer, or ``None`` on any failure."""
        if self._llm is None:
            return None
        provider = self._llm.get_provider_name()
        try:
            answer = await asyncio.wait_for(
                self._llm.complete(
                    system_prompt=system_prompt,
                    user_prompt=content,
                    temperature=self._temperature,
                    max_tokens=max_tokens,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("oracle_timeout", provider=provider, timeout=self._timeout)
            return None
        except Exception as exc:
            # Any oracle failure is recoverable; the caller falls back.
            logger.warning(
                "oracle_call_failed",
                provider=provider,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

        answer = (answer or "").strip()
        if not answer:
            logger.warning("oracle_empty_response", provider=provider)
            return None
        return answer
