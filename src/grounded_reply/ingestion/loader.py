"""Text extraction — route an uploaded blob to the right parser by media type.

Structured formats go through LangChain document loaders (which need a
file on disk, so the blob is spilled to a temporary directory); plain
text is decoded directly; images are described by the vision model.
"""

from __future__ import annotations

import logging
import re
import tempfile
import unicodedata
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from grounded_reply.config import ALLOWED_MEDIA_TYPES
from grounded_reply.errors import ExtractionError, UnsupportedMedia

if TYPE_CHECKING:
    from langchain_core.documents import Document as LCDocument

logger = logging.getLogger(__name__)

ImageDescriber = Callable[[bytes, str], str]

_SUFFIXES = {"pdf": ".pdf", "docx": ".docx", "doc": ".doc"}


@dataclass
class ExtractedContent:
    """Plain text pulled out of an upload.

    Attributes
    ----------
    text:
        Normalised text content; never empty.
    page_count:
        Number of pages reported by the parser (1 for flat formats).
    """

    text: str
    page_count: int = 1


def normalise(text: str) -> str:
    """Unicode NFC, collapse whitespace, strip control chars."""
    text = unicodedata.normalize("NFC", text)
    text = re.sub(r"[^\S\n]+", " ", text)  # collapse spaces (keep \n)
    text = re.sub(r"\n{3,}", "\n\n", text)  # max two consecutive newlines
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", text)  # ctrl chars
    return text.strip()


def _load_with(loader_factory: Callable[[str], object], data: bytes, suffix: str) -> list[LCDocument]:
    """Spill *data* to a temp file and run a LangChain loader over it."""
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / f"upload{suffix}"
        path.write_bytes(data)
        return loader_factory(str(path)).load()  # type: ignore[attr-defined]


def load_pdf(data: bytes) -> list[LCDocument]:
    """One LangChain document per PDF page."""
    from langchain_community.document_loaders import PyPDFLoader

    return _load_with(PyPDFLoader, data, _SUFFIXES["pdf"])


def load_docx(data: bytes) -> list[LCDocument]:
    from langchain_community.document_loaders import Docx2txtLoader

    return _load_with(Docx2txtLoader, data, _SUFFIXES["docx"])


def load_doc(data: bytes) -> list[LCDocument]:
    """Legacy Word files need ``unstructured`` (and antiword / LibreOffice)."""
    from langchain_community.document_loaders import UnstructuredWordDocumentLoader

    return _load_with(UnstructuredWordDocumentLoader, data, _SUFFIXES["doc"])


def decode_text(data: bytes) -> str:
    """Decode a plain-text upload, tolerating a BOM and stray bytes."""
    return data.decode("utf-8-sig", errors="replace")


_LOADERS: dict[str, Callable[[bytes], list[LCDocument]]] = {
    "pdf": load_pdf,
    "docx": load_docx,
    "doc": load_doc,
}


def extract_text(
    data: bytes,
    media_type: str,
    *,
    describe_image: ImageDescriber | None = None,
) -> ExtractedContent:
    """Extract plain text from *data* according to *media_type*.

    Parameters
    ----------
    data:
        Raw upload bytes.
    media_type:
        Declared media type; must be in the upload allow-list.
    describe_image:
        Callable producing a text description of an image.  Required for
        image uploads.

    Raises
    ------
    UnsupportedMedia
        When *media_type* is not in the allow-list.
    ExtractionError
        When the parser fails or produces no text.
    """
    family = ALLOWED_MEDIA_TYPES.get(media_type)
    if family is None:
        raise UnsupportedMedia(f"Unsupported media type: {media_type!r}", media_type=media_type)

    page_count = 1
    try:
        if family == "text":
            raw = decode_text(data)
        elif family == "image":
            if describe_image is None:
                raise ExtractionError("No image describer configured", media_type=media_type)
            raw = describe_image(data, media_type)
        else:
            pages = _LOADERS[family](data)
            page_count = max(len(pages), 1)
            raw = "\n\n".join(page.page_content for page in pages)
    except ExtractionError:
        raise
    except Exception as exc:
        logger.warning("Extraction failed for %s: %s", media_type, exc)
        raise ExtractionError(f"Could not extract text from {media_type}: {exc}", media_type=media_type) from exc

    text = normalise(raw or "")
    if not text:
        raise ExtractionError("No text could be extracted", media_type=media_type)
    return ExtractedContent(text=text, page_count=page_count)
