"""
Ingestion — turn uploaded files into embedded, searchable documents.

Validation, text extraction (PDF, Word, plain text, images), metadata
enrichment and embedding, with every stage outcome recorded on the
document itself.
"""

from grounded_reply.ingestion.embedder import EmbeddingClient
from grounded_reply.ingestion.pipeline import DocumentIngestionPipeline, IngestRequest

__all__ = ["DocumentIngestionPipeline", "EmbeddingClient", "IngestRequest"]
