"""
Vision OCR: one textbook page image -> cleaned MCQ records.

The model is asked for the JSON contract in `core/prompts.OCR_PAGE_PROMPT`;
decoding and cleanup live in `core/llm_json`.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Union

from mcq_study.core.llm_json import extract_ocr_page
from mcq_study.core.prompts import OCR_PAGE_PROMPT
from mcq_study.models.schemas import AIProvider, OcrPage
from mcq_study.services.llm import OpenAICompatClient
from mcq_study.utils.errors import InvalidImageError
from mcq_study.utils.observability import log_event, trace_span

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]+);base64,", re.IGNORECASE)


def split_data_url(image: str) -> tuple[Optional[str], str]:
    """Return (mime type or None, bare base64 payload)."""
    s = str(image or "").strip()
    m = _DATA_URL_RE.match(s)
    if not m:
        return None, s
    return m.group("mime"), s[m.end():]


class VisionClient(OpenAICompatClient):
    def __init__(self, settings=None):
        super().__init__(settings)
        self.model = self.settings.model_vision
        self.default_provider = self.settings.vision_provider
        self.max_tokens = int(self.settings.vision_max_tokens)
        self.min_image_chars = int(self.settings.ocr_min_image_chars)

    def _data_url(self, image_base64: str, mime_type: str) -> str:
        embedded_mime, payload = split_data_url(image_base64)
        if not payload:
            raise InvalidImageError("No image provided")
        if len(payload) < self.min_image_chars:
            raise InvalidImageError(
                "Image appears corrupted (too small). Try uploading again.",
                details={"size": len(payload), "min_size": self.min_image_chars},
            )
        return f"data:{embedded_mime or mime_type};base64,{payload}"

    @trace_span("vision.extract_page")
    def extract_page(
        self,
        image_base64: str,
        *,
        mime_type: str = "image/jpeg",
        provider: Union[AIProvider, str, None] = None,
    ) -> OcrPage:
        """
        Run OCR on one page image (base64, with or without a data-URL prefix).

        An empty `questions` list is a valid result; malformed model output
        raises MalformedResponseError / InvalidShapeError.
        """
        url = self._data_url(image_base64, mime_type)
        provider = provider or self.default_provider
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "image_url", "image_url": {"url": url}},
                    {"type": "text", "text": OCR_PAGE_PROMPT},
                ],
            }
        ]
        result = self.complete(
            op="extract_page",
            provider=provider,
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=0.0,
        )
        page = extract_ocr_page(result.text)
        log_event(
            logger,
            "ocr_page_extracted",
            provider=str(getattr(provider, "value", provider)),
            model=self.model,
            page_no=page.page_no,
            questions=len(page.questions),
            response_chars=len(result.text),
        )
        if not page.questions:
            logger.warning("Vision model returned no questions for page %r", page.page_no)
        return page

    def extract_pages(
        self,
        images: Iterable[str],
        *,
        mime_type: str = "image/jpeg",
        provider: Union[AIProvider, str, None] = None,
    ) -> List[OcrPage]:
        """Pages are processed one at a time, in order; the first failure propagates."""
        return [
            self.extract_page(img, mime_type=mime_type, provider=provider)
            for img in images
        ]
