"""Book ingestion pipeline.

Stages:

1. **Parse** (document_parser.py / DocumentParser) -- front matter to
   BookMetadata, trimmed body, SHA-256 fingerprint of the raw bytes.

2. **Segment** (chapter_segmenter.py / ChapterSegmenter) -- level-1/2
   Markdown headings split the body into ordered chapters.

3. **Chunk** (chunker.py / TextChunker) -- 2000-character windows with a
   400-character overlap, per chapter.

4. **Summarise** (summarizer.py / SummaryGenerator) -- optional book and
   chapter summaries from the generation provider.

5. **Embed and index** (via IEmbeddingProvider / IVectorStoreProvider) --
   chunk vectors replace the book's previous points.

IngestionService drives the stages for one document or a whole directory.
"""

from bilbo.services.ingestion.chapter_segmenter import ChapterSegmenter
from bilbo.services.ingestion.chunker import TextChunker
from bilbo.services.ingestion.document_parser import DocumentParser
from bilbo.services.ingestion.ingestion_service import IngestionService
from bilbo.services.ingestion.summarizer import SummaryGenerator

__all__ = [
    "ChapterSegmenter",
    "DocumentParser",
    "IngestionService",
    "SummaryGenerator",
    "TextChunker",
]
