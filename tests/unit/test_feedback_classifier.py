"""Unit tests for the feedback classifier and its keyword fallbacks."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.llm_provider import ILLMProvider
from src.models.feedback import Sentiment
from src.services.feedback_classifier import (
    SENTIMENT_SYSTEM_PROMPT,
    TOPICS_SYSTEM_PROMPT,
    FeedbackClassifier,
    fallback_sentiment,
    fallback_topics,
    parse_sentiment_response,
)
from src.utils.errors import LLMError


def _llm(**complete_kwargs) -> MagicMock:
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.complete = AsyncMock(**complete_kwargs)
    return mock


# ======================================================================
# Oracle answer mapping
# ======================================================================


class TestParseSentimentResponse:
    @pytest.mark.parametrize(
        ("answer", "expected", "score"),
        [
            ("POSITIVE", Sentiment.POSITIVE, 0.8),
            ("  positive.\n", Sentiment.POSITIVE, 0.8),
            ("Negative", Sentiment.NEGATIVE, 0.2),
            ("NEUTRAL", Sentiment.NEUTRAL, 0.5),
            ("mixed feelings", Sentiment.NEUTRAL, 0.5),
        ],
    )
    def test_maps_answer(self, answer: str, expected: Sentiment, score: float) -> None:
        result = parse_sentiment_response(answer)
        assert result.sentiment is expected
        assert result.sentiment_score == score
        assert result.used_fallback is False

    def test_positive_checked_before_negative(self) -> None:
        assert parse_sentiment_response("POSITIVE, not NEGATIVE").sentiment is Sentiment.POSITIVE


# ======================================================================
# Keyword fallbacks
# ======================================================================


class TestFallbackSentiment:
    def test_positive_keywords(self) -> None:
        result = fallback_sentiment("I LOVE this release")
        assert result.sentiment is Sentiment.POSITIVE
        assert result.sentiment_score == 0.8
        assert result.used_fallback is True

    def test_negative_keywords(self) -> None:
        result = fallback_sentiment("The app crashes on start")
        assert result.sentiment is Sentiment.NEGATIVE
        assert result.sentiment_score == 0.3

    def test_positive_wins_over_negative(self) -> None:
        assert fallback_sentiment("great, but one bug").sentiment is Sentiment.POSITIVE

    def test_no_keywords_is_neutral(self) -> None:
        result = fallback_sentiment("Shipping date?")
        assert result.sentiment is Sentiment.NEUTRAL
        assert result.sentiment_score == 0.5


class TestFallbackTopics:
    def test_first_appearance_order(self) -> None:
        assert fallback_topics("Found a bug in the dashboard API").topics == "bug, dashboard, api"

    def test_deduplicates(self) -> None:
        assert fallback_topics("API api Api, and the UI").topics == "api, ui"

    def test_caps_at_three(self) -> None:
        text = "login broken on mobile, pricing page and dashboard too"
        assert fallback_topics(text).topics == "login, mobile, pricing"

    def test_whole_words_only(self) -> None:
        assert fallback_topics("debugging the guide").topics == "general"

    def test_general_when_nothing_matches(self) -> None:
        result = fallback_topics("Thanks!")
        assert result.topics == "general"
        assert result.used_fallback is True


# ======================================================================
# FeedbackClassifier
# ======================================================================


class TestFeedbackClassifier:
    @pytest.mark.asyncio
    async def test_sentiment_uses_oracle(self) -> None:
        llm = _llm(return_value=" negative ")
        classifier = FeedbackClassifier(llm=llm, timeout=1.0, temperature=0.1)

        result = await classifier.analyze_sentiment("It keeps logging me out")

        assert result.sentiment is Sentiment.NEGATIVE
        assert result.sentiment_score == 0.2
        kwargs = llm.complete.call_args.kwargs
        assert kwargs["system_prompt"] == SENTIMENT_SYSTEM_PROMPT
        assert kwargs["user_prompt"] == "It keeps logging me out"
        assert kwargs["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_topics_use_oracle_trimmed(self) -> None:
        llm = _llm(return_value="  billing, exports \n")
        classifier = FeedbackClassifier(llm=llm, timeout=1.0)

        result = await classifier.extract_topics("Exported invoices are wrong")

        assert result.topics == "billing, exports"
        assert result.used_fallback is False
        assert llm.complete.call_args.kwargs["system_prompt"] == TOPICS_SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_oracle_error_falls_back(self) -> None:
        classifier = FeedbackClassifier(llm=_llm(side_effect=LLMError(message="down")))

        sentiment = await classifier.analyze_sentiment("Found a bug in the dashboard API")
        topics = await classifier.extract_topics("Found a bug in the dashboard API")

        assert sentiment.sentiment is Sentiment.NEGATIVE
        assert sentiment.sentiment_score == 0.3
        assert sentiment.used_fallback is True
        assert topics.topics == "bug, dashboard, api"

    @pytest.mark.asyncio
    async def test_unexpected_exception_falls_back(self) -> None:
        classifier = FeedbackClassifier(llm=_llm(side_effect=RuntimeError("socket closed")))
        result = await classifier.analyze_sentiment("excellent work")
        assert result.sentiment is Sentiment.POSITIVE
        assert result.used_fallback is True

    @pytest.mark.asyncio
    async def test_empty_answer_falls_back(self) -> None:
        classifier = FeedbackClassifier(llm=_llm(return_value="   "))
        sentiment = await classifier.analyze_sentiment("meh")
        topics = await classifier.extract_topics("meh")
        assert sentiment.used_fallback is True
        assert sentiment.sentiment is Sentiment.NEUTRAL
        assert topics.topics == "general"

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self) -> None:
        async def _slow(**_kwargs) -> str:
            await asyncio.sleep(5)
            return "POSITIVE"

        classifier = FeedbackClassifier(llm=_llm(side_effect=_slow), timeout=0.01)
        result = await classifier.analyze_sentiment("the login page crashed")
        assert result.sentiment is Sentiment.NEGATIVE
        assert result.used_fallback is True

    @pytest.mark.asyncio
    async def test_without_oracle_uses_fallbacks(self) -> None:
        classifier = FeedbackClassifier(llm=None)
        sentiment = await classifier.analyze_sentiment("great pricing")
        topics = await classifier.extract_topics("great pricing")
        assert sentiment.sentiment is Sentiment.POSITIVE
        assert topics.topics == "pricing"
