import io
import hashlib
import logging
from typing import List

from docx import Document as DocxDocument
from langchain_community.document_loaders.parsers.pdf import PyPDFParser
from langchain_core.document_loaders import Blob
from pypdf.errors import PdfReadError
from sqlalchemy.ext.asyncio import AsyncSession

from src.documents.models import SourceDocument, ProcessingStatus
from src.shared.exceptions import ExtractionFailure
from src.shared.models import utcnow

logger = logging.getLogger(__name__)

PLAIN_TEXT = "text/plain"
PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class IngestionService:
    """Stateless text extraction keyed on the declared content type."""

    def __init__(self):
        self.pdf_parser = PyPDFParser()

    def calculate_hash(self, file_content: bytes) -> str:
        """Calculates SHA-256 hash of the file content."""
        return hashlib.sha256(file_content).hexdigest()

    def extract_text(self, file_content: bytes, content_type: str) -> str:
        """
        Extracts full text from an uploaded file.
        Unknown content types are decoded as plain text.
        """
        content_type = (content_type or "").split(";")[0].strip().lower()
        if content_type == PDF:
            try:
                pages = self._extract_pdf_pages(file_content)
            except PdfReadError as e:
                logger.warning(f"Malformed PDF, falling back to plain text: {e}")
                return self._decode_plain_text(file_content)
            return "\n\n".join(pages)
        if content_type == DOCX:
            return self._extract_docx_text(file_content)
        return self._decode_plain_text(file_content)

    @staticmethod
    def _decode_plain_text(file_content: bytes) -> str:
        return file_content.decode("utf-8", errors="replace")

    def _extract_docx_text(self, file_content: bytes) -> str:
        """Paragraph text from the main document part, blank paragraphs dropped."""
        doc = DocxDocument(io.BytesIO(file_content))
        return "\n".join(p.text.strip() for p in doc.paragraphs if p.text.strip())

    def _extract_pdf_pages(self, file_content: bytes) -> List[str]:
        """Extract text page-by-page from a PDF using LangChain's PyPDFParser."""
        blob = Blob.from_data(file_content, mime_type=PDF)
        return [doc.page_content or "" for doc in self.pdf_parser.lazy_parse(blob)]


class TextExtractionService:
    """Extraction gateway for a persisted source document.

    On success the extracted text and ``completed`` status are written once.
    On failure the document is marked ``failed`` with the error message and
    timestamp, and ``ExtractionFailure`` propagates to the caller.
    """

    def __init__(self, db: AsyncSession, ingestion: IngestionService | None = None):
        self.db = db
        self.ingestion = ingestion or IngestionService()

    async def call(self, document: SourceDocument) -> str:
        try:
            text = self.ingestion.extract_text(document.content, document.content_type)
        except Exception as e:
            logger.error(f"Text extraction failed for document {document.id}: {e}")
            document.processing_status = ProcessingStatus.FAILED
            document.processing_metadata = {
                **(document.processing_metadata or {}),
                "error": str(e),
                "failed_at": utcnow().isoformat(),
            }
            await self.db.commit()
            raise ExtractionFailure(document.id, str(e)) from e

        document.extracted_text = text
        document.processing_status = ProcessingStatus.COMPLETED
        await self.db.commit()
        return text
