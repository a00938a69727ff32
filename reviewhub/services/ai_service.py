"""
AI Review Assistant.

Drafts replies to customer reviews and turns review/analytics data into
plain-language insights with a hosted chat-completion model (OpenAI by
default, Claude when ``ai_provider="anthropic"``). Every operation makes a
single completion call; JSON answers are parsed best-effort and each
operation has a fixed fallback when the model or its output fails.

Standalone usage:
    from reviewhub.services.ai_service import AIService

    ai = AIService()
    reply = await ai.generate_review_response(
        review, business_name="Harbor Cafe", tone="Friendly", length="Short"
    )
"""

import json
import re
from typing import Any, Awaitable, Callable, Optional, Sequence

import anthropic
import openai
import structlog
from openai import AsyncOpenAI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from reviewhub.config.settings import get_settings
from reviewhub.core.exceptions import AIServiceError, ConfigurationError
from reviewhub.db.enums import ResponseLength, ResponseTone, sentiment_for_rating
from reviewhub.db.models import AISettings, Competitor, Review

logger = structlog.get_logger(__name__)


# =============================================================================
# Prompt Fragments
# =============================================================================

LENGTH_GUIDANCE: dict[str, str] = {
    ResponseLength.SHORT.value: "Keep it to 1-2 sentences.",
    ResponseLength.MEDIUM.value: "Keep it to 2-3 sentences.",
    ResponseLength.LONG.value: "Write 4-5 sentences.",
}

TONE_GUIDANCE: dict[str, str] = {
    ResponseTone.PROFESSIONAL.value: "Use a polished, courteous and professional tone.",
    ResponseTone.FRIENDLY.value: "Use a warm, friendly and personable tone.",
    ResponseTone.CASUAL.value: "Use a relaxed, casual and conversational tone.",
}

SOCIAL_LIMITS: dict[str, str] = {
    "twitter": "Maximum 280 characters including hashtags.",
    "x": "Maximum 280 characters including hashtags.",
    "instagram": "Maximum 2200 characters; aim for 125-150 characters before hashtags.",
    "facebook": "Keep it under 500 characters.",
    "linkedin": "Keep it under 700 characters and professional.",
}

REPLY_SYSTEM_PROMPT = """You write public replies from a business owner to customer reviews.

RULES:
- Address the reviewer by first name when one is given.
- Reference something specific from the review.
- For negative reviews apologise for the specific issue and invite the customer
  to get in touch directly. Never be defensive.
- For positive reviews thank them genuinely and invite them back.
- Do not add a signature, placeholders or quotation marks.
- Return only the reply text."""

ANALYST_SYSTEM_PROMPT = """You are a customer-experience analyst for small, multi-location
businesses. Be concrete, cite the data you were given and keep the owner's
next action in mind. Never invent numbers that were not provided."""

EMPTY_REVIEWS_SUMMARY = "No reviews available for analysis."
EMPTY_COMPETITORS_INSIGHT = "No competitor data available for analysis."
INSUFFICIENT_RECOMMENDATIONS = ["Insufficient data for recommendations."]
FAILED_RECOMMENDATIONS = ["Unable to generate recommendations at this time."]

SUMMARY_REVIEW_LIMIT = 50
RECOMMENDATION_REVIEW_LIMIT = 30
RECOMMENDATION_TEXT_LIMIT = 100

_RETRYABLE_PROVIDER_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
)


# =============================================================================
# Helpers
# =============================================================================


async def should_auto_reply(
    review: Review,
    settings: Optional[AISettings],
    contains_question: Callable[[str], Awaitable[bool]],
) -> bool:
    """Decide whether a review may be answered without a human.

    Negative reviews (rating <= 2) are never auto-answered. A question in a
    positive or neutral review is answered when question replies are on;
    ``contains_question`` is only awaited when its answer changes the outcome.
    """
    if settings is None or not settings.enable_auto_reply:
        return False

    rating = review.rating
    if rating <= 2:
        return False
    if rating >= 4 and not settings.auto_reply_to_positive:
        return False
    if rating == 3 and not settings.auto_reply_to_neutral:
        return False

    if rating >= 4:
        return True

    text = (review.review_text or "").strip()
    return bool(settings.auto_reply_to_questions and text and await contains_question(text))


def parse_json_payload(text: str) -> Any:
    """Parse JSON from a model answer, tolerating code fences and chatter."""
    text = text.strip()

    if text.startswith("```"):
        lines = text.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        match = re.search(r"(\[[\s\S]*\]|\{[\s\S]*\})", text)
        if match:
            return json.loads(match.group())
        raise ValueError(f"Could not parse JSON from response: {text[:500]}")


# =============================================================================
# Service
# =============================================================================


class AIService:
    """Chat-completion backed review assistant."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ):
        settings = get_settings()
        self.provider = provider or settings.ai_provider
        self._openai: Optional[AsyncOpenAI] = None
        self._anthropic: Optional[anthropic.AsyncAnthropic] = None

        if self.provider == "anthropic":
            if not settings.anthropic_api_key:
                raise ConfigurationError("Anthropic API key not configured", "anthropic_api_key")
            self._anthropic = anthropic.AsyncAnthropic(
                api_key=settings.anthropic_api_key.get_secret_value()
            )
            self.model = model or settings.anthropic_model
        else:
            if not settings.openai_api_key:
                raise ConfigurationError("OpenAI API key not configured", "openai_api_key")
            self._openai = AsyncOpenAI(api_key=settings.openai_api_key.get_secret_value())
            self.model = model or settings.openai_model

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    @retry(
        retry=retry_if_exception_type(_RETRYABLE_PROVIDER_ERRORS),
        wait=wait_exponential(multiplier=1, min=1, max=20),
        stop=stop_after_attempt(3),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            "ai_completion_retry",
            attempt=retry_state.attempt_number,
            wait=retry_state.next_action.sleep,
        ),
    )
    async def _complete(
        self,
        system: str,
        user: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> str:
        """Run one completion and return the stripped text."""
        if self._anthropic is not None:
            message = await self._anthropic.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
            return message.content[0].text.strip()

        completion = await self._openai.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
        return (completion.choices[0].message.content or "").strip()

    async def _complete_or_raise(self, system: str, user: str, **kwargs) -> str:
        try:
            return await self._complete(system, user, **kwargs)
        except (openai.OpenAIError, anthropic.AnthropicError) as e:
            logger.error("ai_completion_failed", provider=self.provider, error=str(e))
            raise AIServiceError("AI provider request failed", {"provider": self.provider}) from e

    # -------------------------------------------------------------------------
    # Replies
    # -------------------------------------------------------------------------

    async def generate_review_response(
        self,
        review: Review,
        business_name: str,
        tone: str = ResponseTone.PROFESSIONAL.value,
        length: str = ResponseLength.MEDIUM.value,
    ) -> str:
        sentiment = review.sentiment or sentiment_for_rating(review.rating).value
        prompt = "\n".join(
            [
                f"Business: {business_name}",
                f"Reviewer: {review.reviewer_name}",
                f"Rating: {review.rating}/5 ({sentiment})",
                f"Review: {review.review_text or '(no text, rating only)'}",
                "",
                TONE_GUIDANCE.get(tone, TONE_GUIDANCE[ResponseTone.PROFESSIONAL.value]),
                LENGTH_GUIDANCE.get(length, LENGTH_GUIDANCE[ResponseLength.MEDIUM.value]),
            ]
        )
        reply = await self._complete_or_raise(REPLY_SYSTEM_PROMPT, prompt, max_tokens=300)
        logger.info("review_response_generated", review_id=review.id, tone=tone, length=length)
        return reply

    async def improve_review_response(self, response_text: str, instructions: Optional[str] = None) -> str:
        prompt = (
            "Improve this reply to a customer review. Keep its meaning, fix grammar, "
            "make it warmer and more specific.\n"
        )
        if instructions:
            prompt += f"Additional instructions: {instructions}\n"
        prompt += f"\nReply:\n{response_text}"
        return await self._complete_or_raise(REPLY_SYSTEM_PROMPT, prompt, max_tokens=300)

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    async def analyze_sentiment(self, text: str) -> str:
        """One of Positive/Neutral/Negative; Neutral when the call fails."""
        try:
            answer = await self._complete(
                "Classify the sentiment of customer reviews. Answer with exactly one word: "
                "Positive, Neutral or Negative.",
                text,
                max_tokens=5,
                temperature=0.0,
            )
        except (openai.OpenAIError, anthropic.AnthropicError) as e:
            logger.warning("sentiment_analysis_failed", error=str(e))
            return "Neutral"

        word = answer.strip().strip(".").capitalize()
        return word if word in {"Positive", "Neutral", "Negative"} else "Neutral"

    async def extract_keywords(self, text: str) -> list[str]:
        try:
            answer = await self._complete(
                "Extract the 3-5 most important topics or keywords from a customer review. "
                'Answer with a JSON array of strings only, e.g. ["service", "pizza"].',
                text,
                max_tokens=100,
                temperature=0.3,
            )
            keywords = parse_json_payload(answer)
        except (openai.OpenAIError, anthropic.AnthropicError, ValueError) as e:
            logger.warning("keyword_extraction_failed", error=str(e))
            return []
        return [str(k) for k in keywords] if isinstance(keywords, list) else []

    async def contains_question(self, text: str) -> bool:
        try:
            answer = await self._complete(
                "Does the following customer review ask the business a question that "
                "expects an answer? Reply yes or no.",
                text,
                max_tokens=3,
                temperature=0.0,
            )
        except (openai.OpenAIError, anthropic.AnthropicError) as e:
            logger.warning("question_detection_failed", error=str(e))
            return False
        return "yes" in answer.lower()

    async def should_auto_reply(self, review: Review, settings: Optional[AISettings]) -> bool:
        return await should_auto_reply(review, settings, self.contains_question)

    # -------------------------------------------------------------------------
    # Insights
    # -------------------------------------------------------------------------

    async def generate_review_summary(self, reviews: Sequence[Review]) -> str:
        if not reviews:
            return EMPTY_REVIEWS_SUMMARY

        lines = [
            f"- {r.rating}/5: {r.review_text or '(no text)'}"
            for r in list(reviews)[:SUMMARY_REVIEW_LIMIT]
        ]
        prompt = (
            "Summarise these customer reviews in one short paragraph: overall sentiment, "
            "what customers praise most and the most common complaints.\n\n" + "\n".join(lines)
        )
        return await self._complete_or_raise(ANALYST_SYSTEM_PROMPT, prompt, max_tokens=400)

    async def generate_competitor_insights(
        self,
        business_name: str,
        average_rating: float,
        total_reviews: int,
        competitors: Sequence[Competitor],
    ) -> str:
        if not competitors:
            return EMPTY_COMPETITORS_INSIGHT

        competitor_lines = [
            f"- {c.name}: {c.current_rating or 0:.1f} stars from {c.total_reviews} reviews"
            for c in competitors
        ]
        prompt = (
            f"{business_name} has {average_rating:.1f} stars from {total_reviews} reviews.\n"
            f"Competitors:\n" + "\n".join(competitor_lines) + "\n\n"
            "Explain where the business stands against these competitors and give 3 "
            "specific ways to pull ahead."
        )
        return await self._complete_or_raise(ANALYST_SYSTEM_PROMPT, prompt, max_tokens=600)

    async def generate_analytics_insights(self, stats: dict[str, Any]) -> str:
        prompt = (
            "Here are review analytics for a business as JSON. Write 3-5 short bullet "
            "insights about trends and what to do next.\n\n"
            + json.dumps(stats, default=str, indent=2)
        )
        return await self._complete_or_raise(ANALYST_SYSTEM_PROMPT, prompt, max_tokens=600)

    async def generate_actionable_recommendations(self, reviews: Sequence[Review]) -> list[str]:
        if not reviews:
            return list(INSUFFICIENT_RECOMMENDATIONS)

        lines = [
            f"- {r.rating}/5: {(r.review_text or '')[:RECOMMENDATION_TEXT_LIMIT]}"
            for r in list(reviews)[:RECOMMENDATION_REVIEW_LIMIT]
        ]
        prompt = (
            "Based on these reviews, give 3-5 specific, actionable recommendations. "
            "Answer with a JSON array of strings only.\n\n" + "\n".join(lines)
        )
        try:
            answer = await self._complete(ANALYST_SYSTEM_PROMPT, prompt, max_tokens=500)
            recommendations = parse_json_payload(answer)
        except (openai.OpenAIError, anthropic.AnthropicError, ValueError) as e:
            logger.warning("recommendations_failed", error=str(e))
            return list(FAILED_RECOMMENDATIONS)

        if not isinstance(recommendations, list) or not recommendations:
            return list(FAILED_RECOMMENDATIONS)
        return [str(item) for item in recommendations]

    async def generate_social_media_post(self, review: Review, business_name: str, platform: str) -> str:
        limit = SOCIAL_LIMITS.get(platform.lower(), "Keep it concise.")
        prompt = (
            f"Write a {platform} post for {business_name} celebrating this "
            f"{review.rating}-star review from {review.reviewer_name}:\n"
            f"\"{review.review_text or ''}\"\n\n{limit} Include 2-3 relevant hashtags."
        )
        return await self._complete_or_raise(ANALYST_SYSTEM_PROMPT, prompt, max_tokens=400)


# =============================================================================
# Singleton
# =============================================================================

_ai_service: Optional[AIService] = None


def get_ai_service() -> AIService:
    """Get or create the singleton AIService."""
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService()
    return _ai_service


def reset_ai_service() -> None:
    """Reset the singleton (for testing)."""
    global _ai_service
    _ai_service = None
