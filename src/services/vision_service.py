"""Drink recognition through a vision-capable LLM.

Two providers are supported: the GLM chat-completions API (with web search
so the model can look up official nutrition data) and Claude Vision.
"""

import logging

import anthropic
import httpx

from src.config import Settings, get_settings
from src.services.errors import WorkerError

logger = logging.getLogger(__name__)

DRINK_ANALYSIS_PROMPT = """You are a beverage nutrition assistant.

Tasks:
1. Analyze the image and identify the drink's brand, product name and specs (volume, sweetness level, temperature).
2. If a nutrition facts table is clearly visible in the image, extract the data from it.
3. Otherwise, search for the product's official nutrition data, especially caffeine (mg) and sugar (g).

Combine the image recognition and search results and return JSON in exactly this shape:
{
  "brand": "brand name",
  "product_name": "full product name",
  "specs_text": "spec description",
  "caffeine_mg": number | null,
  "sugar_g": number | null,
  "volume_ml": number | null,
  "data_source": "image" | "search" | "estimation",
  "note": "short explanation of where the data came from"
}

Rules:
- Output strictly JSON.
- Do not wrap the JSON in markdown code fences.
- For made-to-order drinks (coffee chains, tea shops) always search for official data.
- Use null for any number you cannot determine."""


class VisionService:
    """Sends a drink photo to the configured provider and returns raw text."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.provider = self.settings.vision_provider
        self.timeout = self.settings.vision_timeout_seconds

    @property
    def is_configured(self) -> bool:
        """Check if the selected provider has credentials."""
        if self.provider == "anthropic":
            return bool(self.settings.anthropic_api_key)
        return bool(self.settings.bigmodel_api_key)

    async def analyze_image(self, image_base64: str, mime_type: str | None) -> str:
        """Return the model's free-text answer for a drink photo.

        Raises:
            WorkerError: On missing configuration, upstream API errors, and
                empty or truncated output.
        """
        if not self.is_configured:
            raise WorkerError(f"Vision provider '{self.provider}' is not configured")

        media_type = mime_type or "image/jpeg"
        if self.provider == "anthropic":
            return await self._analyze_with_claude(image_base64, media_type)
        return await self._analyze_with_glm(image_base64, media_type)

    async def _analyze_with_glm(self, image_base64: str, media_type: str) -> str:
        body = {
            "model": self.settings.glm_model,
            "max_tokens": 8192,
            "temperature": 0.5,  # lower temperature keeps the JSON stable
            "tools": [
                {
                    "type": "web_search",
                    "web_search": {"enable": True, "search_result": True},
                }
            ],
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": DRINK_ANALYSIS_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{media_type};base64,{image_base64}"},
                        },
                    ],
                }
            ],
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.settings.glm_base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.settings.bigmodel_api_key}"},
                json=body,
            )

        if response.is_error:
            logger.error(f"GLM API error {response.status_code}: {response.text[:500]}")
            raise WorkerError(f"GLM API Error: {response.text}")

        data = response.json()
        choice = (data.get("choices") or [{}])[0]
        if choice.get("finish_reason") == "length":
            raise WorkerError("AI response was truncated, please try again")

        content = (choice.get("message") or {}).get("content")
        if not content:
            raise WorkerError("AI response was empty")
        return content

    async def _analyze_with_claude(self, image_base64: str, media_type: str) -> str:
        client = anthropic.AsyncAnthropic(
            api_key=self.settings.anthropic_api_key, timeout=self.timeout
        )
        try:
            message = await client.messages.create(
                model=self.settings.anthropic_model,
                max_tokens=4096,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": media_type,
                                    "data": image_base64,
                                },
                            },
                            {"type": "text", "text": DRINK_ANALYSIS_PROMPT},
                        ],
                    }
                ],
            )
        except anthropic.APIError as e:
            logger.error(f"Claude API error: {e}")
            raise WorkerError(f"Claude API Error: {e}") from e

        if message.stop_reason == "max_tokens":
            raise WorkerError("AI response was truncated, please try again")

        text = "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise WorkerError("AI response was empty")
        return text
