"""
Suggestion provider interface for action-plan ideas and title rewriting.

The concrete implementation talks to Google Gemini over HTTP. Swap it via
set_suggestion_provider() in tests or to plug in another model.
"""
from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from watchdo.settings import get_settings

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
MAX_PLANS = 3
JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
RATE_LIMIT_MARKERS = ("429", "quota", "rate")


@dataclass
class SuggestionResult:
    success: bool
    action_plans: list[str] = field(default_factory=list)
    error: str | None = None
    retryable: bool = False


@dataclass
class TitleResult:
    success: bool
    title: str | None = None
    error: str | None = None
    retryable: bool = False


class SuggestionProvider(ABC):
    """Abstract provider. Implementations return typed results and never raise."""

    @abstractmethod
    async def suggest_plans(self, video_id: str, title: str | None) -> SuggestionResult:
        ...

    @abstractmethod
    async def convert_to_title(self, plan_text: str) -> TitleResult:
        ...


def _plans_prompt(title: str | None) -> str:
    return (
        "Suggest 3 one-off actions a viewer of the YouTube video below could do today, "
        "each phrased like a catchy YouTube video title in the past tense "
        '("I tried ...", "What happened when I ..."). Max 30 characters each. '
        "No habits or ongoing routines.\n\n"
        f"Video title: {title or '(unknown)'}\n\n"
        'Reply with JSON only: {"action_plans": ["...", "...", "..."]}'
    )


def _title_prompt(plan_text: str) -> str:
    return (
        "Rewrite the action plan below as a catchy YouTube-style title in the past tense, "
        "at most 30 characters, framed so the result feels worth watching.\n\n"
        f"Action plan: {plan_text}\n\n"
        'Reply with JSON only: {"title": "..."}'
    )


def _is_rate_limited(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in RATE_LIMIT_MARKERS)


def _extract_json(text: str | None) -> dict[str, Any] | None:
    if not text:
        return None
    match = JSON_OBJECT_RE.search(text)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class GeminiSuggestionProvider(SuggestionProvider):
    def __init__(self, api_key: str | None = None, model: str | None = None, timeout: float | None = None):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.timeout = timeout or settings.llm_timeout_sec

    async def _generate(self, prompt: str) -> tuple[str | None, str | None]:
        """Return (text, error_message)."""
        url = GEMINI_URL.format(model=self.model)
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(url, params={"key": self.api_key}, json=body)
        try:
            data = resp.json()
        except ValueError:
            return None, f"HTTP {resp.status_code}"
        if resp.status_code >= 400 or "error" in data:
            message = (data.get("error") or {}).get("message") or f"HTTP {resp.status_code}"
            if resp.status_code == 429:
                message = f"429 {message}"
            return None, message
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        return text, None

    async def suggest_plans(self, video_id: str, title: str | None) -> SuggestionResult:
        if not self.api_key:
            return SuggestionResult(success=False, error="Gemini API key is not configured")
        if not video_id:
            return SuggestionResult(success=False, error="Video ID is missing")
        try:
            text, error = await self._generate(_plans_prompt(title))
        except httpx.HTTPError as exc:
            logger.error(f"[gemini] suggest_plans request failed for {video_id}: {exc}")
            return SuggestionResult(success=False, error="Failed to generate action plans", retryable=True)
        if error:
            logger.error(f"[gemini] API error: {error}")
            if _is_rate_limited(error):
                return SuggestionResult(
                    success=False, error="The AI is busy, try again in about 20 seconds", retryable=True
                )
            return SuggestionResult(success=False, error="Failed to generate action plans")
        data = _extract_json(text)
        if data is None:
            logger.error(f"[gemini] could not parse action plans from: {(text or '')[:200]}")
            return SuggestionResult(success=False, error="Failed to parse action plans")
        plans = data.get("action_plans")
        if not isinstance(plans, list) or not plans:
            return SuggestionResult(success=False, error="No action plans found")
        plans = [str(p).strip() for p in plans if str(p).strip()][:MAX_PLANS]
        return SuggestionResult(success=True, action_plans=plans)

    async def convert_to_title(self, plan_text: str) -> TitleResult:
        if not self.api_key:
            return TitleResult(success=False, error="Gemini API key is not configured")
        if not plan_text or not plan_text.strip():
            return TitleResult(success=False, error="Action plan is empty")
        try:
            text, error = await self._generate(_title_prompt(plan_text.strip()))
        except httpx.HTTPError as exc:
            logger.error(f"[gemini] convert_to_title request failed: {exc}")
            return TitleResult(success=False, error="Conversion failed", retryable=True)
        if error:
            logger.error(f"[gemini] API error: {error}")
            if _is_rate_limited(error):
                return TitleResult(success=False, error="The AI is busy, try again shortly", retryable=True)
            return TitleResult(success=False, error=f"Conversion failed: {error}")
        data = _extract_json(text)
        title = (data or {}).get("title")
        if not title:
            return TitleResult(success=False, error="No title found")
        return TitleResult(success=True, title=str(title).strip())


_provider: SuggestionProvider | None = None


def get_suggestion_provider() -> SuggestionProvider:
    global _provider
    if _provider is None:
        _provider = GeminiSuggestionProvider()
    return _provider


def set_suggestion_provider(provider: SuggestionProvider | None) -> None:
    global _provider
    _provider = provider
