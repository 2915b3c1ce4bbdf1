"""
Thumbnail image generation via the Hugging Face inference router.

Env:
  HUGGINGFACE_API_KEY, HUGGINGFACE_MODEL

HTTP 503 means the model is still loading; the response carries an
estimated_time that callers use as a retry delay.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from watchdo.settings import get_settings

logger = logging.getLogger(__name__)

HF_API_URL = "https://router.huggingface.co/hf-inference/models/{model}"
DEFAULT_RETRY_AFTER = 20.0
DEFAULT_THEME = "achieving a goal, feeling accomplished, celebrating success"

# plan keyword -> scene description
THEME_KEYWORDS: dict[str, str] = {
    "早起き": "waking up early, morning sunrise, stretching",
    "朝": "morning, sunrise",
    "筋トレ": "exercising, lifting tiny dumbbells, workout",
    "運動": "exercising, being active",
    "読書": "reading a book, wearing tiny glasses",
    "本": "reading, books",
    "勉強": "studying, learning, with notebook",
    "瞑想": "meditating peacefully, zen, calm",
    "料理": "cooking, chef hat, kitchen",
    "掃除": "cleaning, with tiny broom",
    "断捨離": "organizing, tidying up, minimalist",
    "水": "drinking water, staying hydrated",
    "睡眠": "sleeping well, bedtime, cozy",
    "散歩": "walking outside, nature",
    "ランニング": "running, jogging",
    "プログラミング": "coding, with tiny laptop",
    "英語": "learning English, studying",
    "貯金": "saving money, piggy bank",
    "ダイエット": "eating healthy, fitness",
}


@dataclass
class ThumbnailResult:
    image_bytes: bytes | None = None
    mime_type: str = "image/png"
    retry_after: float | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.image_bytes is not None


def extract_theme(plan_text: str) -> str:
    themes = [desc for keyword, desc in THEME_KEYWORDS.items() if keyword in plan_text]
    return ", ".join(themes) if themes else DEFAULT_THEME


def build_prompt(plan_text: str) -> str:
    return "\n".join(
        [
            "A cute kawaii yellow baby chick character illustration for YouTube thumbnail.",
            f"Theme: {extract_theme(plan_text)}",
            "Style: Simple, clean lines, bright cheerful colors, cartoon style, chibi.",
            "The chick has big expressive eyes, small orange beak, tiny wings.",
            "Background: Simple gradient or solid color, eye-catching.",
            "Aspect ratio: 16:9 horizontal format.",
            "No text, no words in image.",
            "High quality, professional illustration.",
        ]
    )


class HuggingFaceThumbnailGenerator:
    def __init__(self, api_key: str | None = None, model: str | None = None, timeout: float | None = None):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.huggingface_api_key
        self.model = model or settings.huggingface_model
        self.timeout = timeout or settings.image_timeout_sec

    async def generate(self, plan_text: str) -> ThumbnailResult:
        if not self.api_key:
            return ThumbnailResult(error="Hugging Face API key is not configured")
        if not plan_text or not plan_text.strip():
            return ThumbnailResult(error="Action plan is empty")

        prompt = build_prompt(plan_text)
        logger.info(f"[huggingface] generating image, prompt={prompt[:100]!r}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    HF_API_URL.format(model=self.model),
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={"inputs": prompt},
                )
        except httpx.HTTPError as exc:
            logger.error(f"[huggingface] request failed: {exc}")
            return ThumbnailResult(error=f"Thumbnail generation failed: {exc}")

        if resp.status_code == 200:
            return ThumbnailResult(image_bytes=resp.content, mime_type=resp.headers.get("content-type", "image/png"))
        if resp.status_code == 503:
            try:
                estimated = float(resp.json().get("estimated_time") or DEFAULT_RETRY_AFTER)
            except (ValueError, TypeError, AttributeError):
                estimated = DEFAULT_RETRY_AFTER
            return ThumbnailResult(error=f"Model is loading, retry in about {int(estimated)}s", retry_after=estimated)
        if resp.status_code == 429:
            return ThumbnailResult(error="Rate limit reached, try again later")

        try:
            message = resp.json().get("error") or resp.text[:200]
        except (ValueError, AttributeError):
            message = resp.text[:200]
        logger.error(f"[huggingface] API error ({resp.status_code}): {message}")
        return ThumbnailResult(error=f"Thumbnail generation failed: {message}")
