"""Parsing of free-text vision model output into an AnalysisResult.

Models are asked for bare JSON but routinely wrap it in vendor boundary tokens
or markdown code fences. Parsing runs in stages, each usable on its own:

1. ``strip_wrappers``: remove configured wrapper tokens and surrounding fences.
2. ``parse_structured``: decode the cleaned text as a JSON object.
3. ``extract_fenced_block``: fall back to the first fenced block in the raw text.
"""

import json
import logging
import re
from collections.abc import Sequence
from typing import Any

from src.schemas.analysis import AnalysisResult
from src.services.errors import ResponseParseError

logger = logging.getLogger(__name__)

DEFAULT_WRAPPER_TOKENS = ("<|begin_of_box|>", "<|end_of_box|>")

_LEADING_FENCE_RE = re.compile(r"^```(?:json|JSON)?\s*")
_TRAILING_FENCE_RE = re.compile(r"\s*```$")
_FENCED_BLOCK_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)```")

RESULT_KEYS = (
    "brand",
    "product_name",
    "specs_text",
    "caffeine_mg",
    "sugar_g",
    "volume_ml",
    "data_source",
    "note",
)


class AnalysisResponseParser:
    """Unwrap-then-parse strategy for model output."""

    def __init__(self, wrapper_tokens: Sequence[str] | None = None) -> None:
        self.wrapper_tokens = tuple(
            DEFAULT_WRAPPER_TOKENS if wrapper_tokens is None else wrapper_tokens
        )

    def strip_wrappers(self, content: str) -> str:
        """Remove boundary tokens and a surrounding code fence, then trim."""
        cleaned = content
        for token in self.wrapper_tokens:
            cleaned = cleaned.replace(token, "")
        cleaned = cleaned.strip()
        cleaned = _LEADING_FENCE_RE.sub("", cleaned)
        cleaned = _TRAILING_FENCE_RE.sub("", cleaned)
        return cleaned.strip()

    @staticmethod
    def parse_structured(text: str) -> dict[str, Any]:
        """Decode ``text`` as a JSON object.

        Raises:
            ResponseParseError: If the text is not JSON or not an object.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ResponseParseError(f"Invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ResponseParseError("Expected a JSON object")
        return data

    def extract_fenced_block(self, content: str) -> dict[str, Any]:
        """Decode the first fenced block found anywhere in ``content``."""
        match = _FENCED_BLOCK_RE.search(content)
        if not match:
            raise ResponseParseError("No fenced block found")
        return self.parse_structured(match.group(1).strip())

    def parse(self, content: str) -> dict[str, Any]:
        """Run all stages and return the decoded object.

        Raises:
            ResponseParseError: If every stage fails.
        """
        if not content or not content.strip():
            raise ResponseParseError("AI response was empty")
        try:
            return self.parse_structured(self.strip_wrappers(content))
        except ResponseParseError:
            logger.debug("Direct parse failed, trying fenced block extraction")
        try:
            return self.extract_fenced_block(content)
        except ResponseParseError as e:
            logger.warning(f"Failed to parse model output: {content[:200]!r}")
            raise ResponseParseError("Failed to parse JSON from AI response") from e

    def parse_result(self, content: str) -> AnalysisResult:
        """Parse ``content`` and normalize it into an AnalysisResult."""
        data = self.parse(content)
        return AnalysisResult.model_validate({key: data.get(key) for key in RESULT_KEYS})
