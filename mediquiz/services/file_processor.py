import io
import zipfile
from dataclasses import dataclass, field
from typing import Dict, Optional

import structlog
from pptx import Presentation
from pptx.exc import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from mediquiz import settings
from mediquiz.errors import FileProcessingError, FileValidationError, GenerationError

logger = structlog.get_logger()

PPTX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

ALLOWED_MIME_TYPES = (
    "text/plain",
    "application/pdf",
    PPTX_MIME_TYPE,
    "image/jpeg",
    "image/png",
    "image/gif",
)

# some browsers send a generic type; fall back on the extension
_EXTENSION_TYPES = {
    ".txt": "text/plain",
    ".pdf": "application/pdf",
    ".pptx": PPTX_MIME_TYPE,
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
}


@dataclass
class ProcessedFile:
    text: str
    metadata: Dict[str, object] = field(default_factory=dict)


def resolve_mime_type(filename: str, mime_type: Optional[str]) -> str:
    if mime_type and mime_type != "application/octet-stream":
        return mime_type
    name = (filename or "").lower()
    for ext, guessed in _EXTENSION_TYPES.items():
        if name.endswith(ext):
            return guessed
    return mime_type or "application/octet-stream"


def validate_file_upload(filename: str, mime_type: str, size: int, max_size: int = settings.MAX_UPLOAD_BYTES) -> None:
    if mime_type not in ALLOWED_MIME_TYPES:
        raise FileValidationError(f"File type {mime_type} not supported. Allowed types: PDF, PPTX, TXT, JPG, PNG, GIF")
    if size > max_size:
        raise FileValidationError(f"File size exceeds {max_size // (1024 * 1024)}MB limit")
    if size == 0:
        raise FileValidationError(f"File {filename} is empty")


def extract_text_from_pdf(data: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted:
            reader.decrypt("")
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    except (PyPdfError, ValueError) as e:
        raise FileProcessingError(f"PDF parse error: {e}") from e


def extract_text_from_pptx(data: bytes) -> str:
    """Slide text in slide order, one line per text frame"""
    try:
        presentation = Presentation(io.BytesIO(data))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
        raise FileProcessingError(f"PPTX parse error: {e}") from e

    lines = []
    for number, slide in enumerate(presentation.slides, start=1):
        texts = [shape.text_frame.text for shape in slide.shapes if shape.has_text_frame and shape.text_frame.text.strip()]
        if texts:
            lines.append(f"Slide {number}:")
            lines.extend(texts)
    return "\n".join(lines)


def process_uploaded_file(filename: str, mime_type: str, data: bytes, generator=None) -> ProcessedFile:
    """Extract text from an uploaded file.

    Images need ``generator`` (a QuizGenerator) for multimodal transcription.
    """
    if mime_type == "text/plain":
        text = data.decode("utf-8", errors="ignore")
    elif mime_type == "application/pdf":
        text = extract_text_from_pdf(data)
    elif mime_type == PPTX_MIME_TYPE:
        text = extract_text_from_pptx(data)
    elif mime_type.startswith("image/"):
        if generator is None:
            raise FileProcessingError("Image transcription requires the AI service")
        try:
            text = generator.transcribe_image(data, mime_type)
        except GenerationError as e:
            raise FileProcessingError(f"Failed to process file: {e}") from e
    else:
        raise FileValidationError(f"Unsupported file type: {mime_type}")

    logger.info("file_processed", filename=filename, type=mime_type, size=len(data), chars=len(text))
    return ProcessedFile(
        text=text,
        metadata={"filename": filename, "size": len(data), "type": mime_type},
    )
