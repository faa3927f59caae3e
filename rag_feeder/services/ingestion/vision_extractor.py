"""Vision extraction for scanned manuals and photographed pages.

Sends each page image to a multimodal model, asking for a verbatim
transcription plus a description of diagrams, labels, part numbers,
measurements and warnings.  Page outputs are joined with
``--- Page N ---`` markers into one plain-text document, which is then
ingested exactly like uploaded text.

Pages larger than ``vision_max_image_dim`` on their longest side are
downscaled with Pillow before upload.
"""

from __future__ import annotations

import asyncio
import io

from PIL import Image

from rag_feeder.config.settings import Settings
from rag_feeder.interfaces.llm_provider import ILLMProvider
from rag_feeder.models.rag import PageImage, VisionExtraction
from rag_feeder.utils.deadline import Deadline
from rag_feeder.utils.errors import ExtractionError, ProviderError, ValidationError
from rag_feeder.utils.logging import get_logger

_SYSTEM_PROMPT = """\
You are an expert at extracting text and describing visual content from \
technical documents, manuals, and repair guides.

For each image:
1. Extract ALL readable text, preserving structure (headers, lists, tables)
2. Describe any diagrams, photos, or illustrations in detail
3. Note any part numbers, measurements, specifications, or procedures shown
4. If there are warning labels or safety notices, transcribe them exactly

Format your response as structured text that can be searched later."""

_PAGE_PROMPT = (
    "Extract all text and describe all visual content from this page (page {page}). "
    "Include any diagrams, photos, part numbers, and procedures shown."
)


class VisionExtractor:
    """Turns page images into searchable text.

    Parameters
    ----------
    llm_provider:
        A provider whose :meth:`~ILLMProvider.supports_vision` is ``True``.
    settings:
        Image size limit, token budget, temperature and the minimum amount
        of text an extraction must yield.
    """

    def __init__(self, llm_provider: ILLMProvider, settings: Settings) -> None:
        self._llm = llm_provider
        self._max_dim = settings.vision_max_image_dim
        self._max_tokens = settings.vision_max_tokens
        self._temperature = settings.vision_temperature
        self._min_text_length = settings.vision_min_text_length
        self._logger = get_logger(__name__)

    async def extract(self, pages: list[PageImage], deadline: Deadline | None = None) -> VisionExtraction:
        """Transcribe every page; failing pages are logged and skipped.

        Raises
        ------
        ValidationError
            If *pages* is empty.
        ExtractionError
            If the combined text is shorter than ``vision_min_text_length``.
        """
        if not pages:
            raise ValidationError("No images provided")

        parts: list[str] = []
        failed = 0
        for position, page in enumerate(pages, start=1):
            page_number = page.page_number or position
            try:
                image_bytes = await asyncio.to_thread(self._downscale, page.image_data)
                text = await self._llm.vision_extract(
                    image_bytes,
                    _PAGE_PROMPT.format(page=page_number),
                    system_prompt=_SYSTEM_PROMPT,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                    deadline=deadline,
                )
            except (ProviderError, Image.DecompressionBombError) as exc:
                failed += 1
                self._logger.warning(
                    "vision_page_failed", page=page_number, error=str(exc), error_type=type(exc).__name__
                )
                continue

            if text:
                parts.append(f"--- Page {page_number} ---\n{text}")
                self._logger.info("vision_page_extracted", page=page_number, chars=len(text))
            else:
                self._logger.warning("vision_page_empty", page=page_number)

        full_text = "\n\n".join(parts)
        self._logger.info(
            "vision_extraction_complete",
            pages=len(pages),
            pages_processed=len(parts),
            pages_failed=failed,
            chars=len(full_text),
        )
        if len(full_text) < self._min_text_length:
            raise ExtractionError(provider_name=self._llm.get_provider_name())

        return VisionExtraction(text=full_text, pages_processed=len(parts), pages_failed=failed)

    def _downscale(self, image_bytes: bytes) -> bytes:
        """Shrink the image to ``max_dim`` on its longest side.

        Images already small enough, or that Pillow cannot decode, are sent
        unchanged.  ``Image.DecompressionBombError`` propagates so the page
        is counted as failed.
        """
        try:
            img = Image.open(io.BytesIO(image_bytes))
            if max(img.size) <= self._max_dim:
                return image_bytes
            original_size = img.size
            img = img.convert("RGB")
            img.thumbnail((self._max_dim, self._max_dim))
            buf = io.BytesIO()
            img.save(buf, format="JPEG", quality=90)
        except (OSError, ValueError) as exc:
            self._logger.debug("vision_downscale_skipped", error=str(exc))
            return image_bytes

        self._logger.debug("vision_page_downscaled", original_size=original_size, new_size=img.size)
        return buf.getvalue()
