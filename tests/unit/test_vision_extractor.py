"""Unit tests for VisionExtractor -- page transcription and aggregation."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from conftest import ScriptedLLMProvider, make_png
from rag_feeder.config.settings import Settings
from rag_feeder.models.rag import PageImage
from rag_feeder.services.ingestion.vision_extractor import VisionExtractor
from rag_feeder.utils.deadline import Deadline
from rag_feeder.utils.errors import CompletionProviderError, ExtractionError, ValidationError

_PAGE_ONE = "OIL FILTER REPLACEMENT\nTorque: 25 ft-lbs\nPart no. LF-3000"
_PAGE_TWO = "Diagram: exploded view of the filter housing with gasket."


def _make_extractor(llm: ScriptedLLMProvider, **overrides) -> VisionExtractor:
    return VisionExtractor(llm, Settings(_env_file=None, **overrides))


def _pages(count: int) -> list[PageImage]:
    return [PageImage(image_data=make_png(), page_number=i) for i in range(1, count + 1)]


class TestAggregation:
    @pytest.mark.asyncio()
    async def test_pages_joined_with_markers(self) -> None:
        llm = ScriptedLLMProvider(page_texts=[_PAGE_ONE, _PAGE_TWO])

        result = await _make_extractor(llm).extract(_pages(2))

        assert result.text == f"--- Page 1 ---\n{_PAGE_ONE}\n\n--- Page 2 ---\n{_PAGE_TWO}"
        assert result.pages_processed == 2
        assert result.pages_failed == 0

    @pytest.mark.asyncio()
    async def test_page_numbers_default_to_position(self) -> None:
        llm = ScriptedLLMProvider(page_texts=[_PAGE_ONE, _PAGE_TWO])
        pages = [PageImage(image_data=make_png()), PageImage(image_data=make_png())]

        result = await _make_extractor(llm).extract(pages)

        assert "--- Page 2 ---" in result.text
        assert "page 2" in llm.vision_calls[1]["prompt"]

    @pytest.mark.asyncio()
    async def test_failed_page_is_skipped(self) -> None:
        llm = ScriptedLLMProvider(page_texts=[CompletionProviderError("500"), _PAGE_TWO + " " + _PAGE_ONE])

        result = await _make_extractor(llm).extract(_pages(2))

        assert result.pages_processed == 1
        assert result.pages_failed == 1
        assert result.text.startswith("--- Page 2 ---")

    @pytest.mark.asyncio()
    async def test_system_prompt_and_deadline_forwarded(self) -> None:
        llm = ScriptedLLMProvider(page_texts=[_PAGE_ONE])

        await _make_extractor(llm).extract(_pages(1), deadline=Deadline.after(60))

        assert "technical documents" in llm.vision_calls[0]["system_prompt"]


class TestRejection:
    @pytest.mark.asyncio()
    async def test_no_pages(self) -> None:
        with pytest.raises(ValidationError, match="No images provided"):
            await _make_extractor(ScriptedLLMProvider()).extract([])

    @pytest.mark.asyncio()
    async def test_too_little_text(self) -> None:
        llm = ScriptedLLMProvider(page_texts=["blurry"])
        with pytest.raises(ExtractionError) as exc_info:
            await _make_extractor(llm).extract(_pages(1))
        assert exc_info.value.message == "Could not extract meaningful content from images"
        assert exc_info.value.http_status == 422

    @pytest.mark.asyncio()
    async def test_every_page_failing(self) -> None:
        llm = ScriptedLLMProvider(page_texts=[CompletionProviderError("a"), CompletionProviderError("b")])
        with pytest.raises(ExtractionError):
            await _make_extractor(llm).extract(_pages(2))


class TestDownscale:
    @pytest.mark.asyncio()
    async def test_large_page_downscaled_before_upload(self) -> None:
        llm = ScriptedLLMProvider(page_texts=[_PAGE_ONE])
        big = PageImage(image_data=make_png(width=400, height=200), page_number=1)

        await _make_extractor(llm, vision_max_image_dim=100).extract([big])

        sent = Image.open(io.BytesIO(llm.vision_calls[0]["image_bytes"]))
        assert max(sent.size) == 100
        assert sent.size == (100, 50)

    @pytest.mark.asyncio()
    async def test_small_page_sent_unchanged(self) -> None:
        llm = ScriptedLLMProvider(page_texts=[_PAGE_ONE])
        data = make_png(width=64, height=64)

        await _make_extractor(llm).extract([PageImage(image_data=data, page_number=1)])

        assert llm.vision_calls[0]["image_bytes"] == data

    @pytest.mark.asyncio()
    async def test_undecodable_bytes_sent_unchanged(self) -> None:
        llm = ScriptedLLMProvider(page_texts=[_PAGE_ONE])

        await _make_extractor(llm).extract([PageImage(image_data=b"not an image", page_number=1)])

        assert llm.vision_calls[0]["image_bytes"] == b"not an image"

    @pytest.mark.asyncio()
    async def test_oversized_page_counted_as_failed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        # 32x32 exceeds twice the lowered pixel limit; 8x8 stays under it.
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        llm = ScriptedLLMProvider(page_texts=[_PAGE_ONE + " " + _PAGE_TWO])
        pages = [
            PageImage(image_data=make_png(32, 32), page_number=1),
            PageImage(image_data=make_png(8, 8), page_number=2),
        ]

        result = await _make_extractor(llm).extract(pages)

        assert result.pages_failed == 1
        assert result.pages_processed == 1
        assert result.text.startswith("--- Page 2 ---")
        assert len(llm.vision_calls) == 1
