"""Document ingestion for the rag-feeder knowledge base.

Pipeline stages: **validate -> persist -> chunk -> embed -> store**.

1. **Extract** (vision_extractor.py / VisionExtractor) -- Scanned pages are
   transcribed by a multimodal model into plain text first.
2. **Chunk** (chunker.py / TextChunker) -- Fixed-size overlapping
   character windows (1000 chars, 200 overlap by default).
3. **Embed + Store** (ingestion_service.py / IngestionService) -- A
   background run embeds the windows in batches and appends them to the
   vector store, tracking progress on the document row.
"""

from rag_feeder.services.ingestion.chunker import TextChunker
from rag_feeder.services.ingestion.ingestion_service import IngestionService
from rag_feeder.services.ingestion.vision_extractor import VisionExtractor

__all__ = [
    "IngestionService",
    "TextChunker",
    "VisionExtractor",
]
