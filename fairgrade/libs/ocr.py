"""Text extraction from uploaded images and PDFs using Tesseract and PyMuPDF."""

import asyncio
import inspect
import io
import logging
from typing import Any, Callable, Optional, Protocol

import fitz
import pytesseract
from PIL import Image

from fairgrade.libs.config_loader import ConfigType, get_config

LOG = logging.getLogger(__name__)

# Render scale for scanned PDF pages that have no text layer (~144 dpi).
PDF_RENDER_ZOOM = 2.0


class Document(Protocol):
    name: str
    data: bytes
    mime_type: str


class OCRError(RuntimeError):
    """Text could not be extracted from a file."""


def _check_tesseract(language: str) -> None:
    version = pytesseract.get_tesseract_version()
    languages = pytesseract.get_languages(config='')
    if language not in languages:
        raise OCRError(f"Tesseract {version} has no '{language}' language data (have: {languages})")
    LOG.info("Tesseract %s ready with language %s", version, language)


class OCREngine:
    """
    Lazily initialized OCR handle.

    The engine is created once and then shared by whoever holds a reference
    to it. ``initialize`` is safe to call from concurrent tasks: the first
    caller runs the setup, the rest wait for it and return.
    """

    def __init__(self, language: str = "eng", tesseract_cmd: Optional[str] = None,
                 initializer: Optional[Callable[[str], Any]] = None):
        """
        Args:
            language: Tesseract language code
            tesseract_cmd: Path to the tesseract binary (default: found on PATH)
            initializer: Setup callable run once with the language; a coroutine function
                is awaited, anything else runs in a worker thread
        """
        self.language = language
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self._initializer = initializer or _check_tesseract
        self._initialized = False
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, configs: ConfigType) -> "OCREngine":
        return cls(
            language=get_config("ocr.language", configs, default="eng"),
            tesseract_cmd=get_config("ocr.tesseract_cmd", configs, default=None) or None,
        )

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Run engine setup once; later calls are no-ops."""
        if self._initialized:
            return
        async with self._lock:
            if self._initialized:
                return
            if inspect.iscoroutinefunction(self._initializer):
                await self._initializer(self.language)
            else:
                # Tesseract probing spawns subprocesses
                await asyncio.to_thread(self._initializer, self.language)
            self._initialized = True

    async def extract_text(self, document: Document) -> str:
        """
        Extract text from an image, PDF or plain-text file.

        Raises:
            OCRError: If the file type is unsupported or the file can't be read
        """
        mime_type = document.mime_type or ""
        if mime_type.startswith("text/"):
            return document.data.decode("utf-8", errors="replace")

        await self.initialize()
        if mime_type == "application/pdf":
            return await asyncio.to_thread(self._pdf_to_text, document.data)
        if mime_type.startswith("image/"):
            return await asyncio.to_thread(self._image_to_text, document.data)
        raise OCRError(f"Unsupported file type for text extraction: {document.name} ({mime_type})")

    def _image_to_text(self, data: bytes) -> str:
        try:
            with Image.open(io.BytesIO(data)) as image:
                return pytesseract.image_to_string(image, lang=self.language)
        except (OSError, Image.DecompressionBombError) as e:
            raise OCRError(f"Could not read image: {e}") from e
        except pytesseract.TesseractError as e:
            raise OCRError(f"Tesseract failed: {e}") from e

    def _pdf_to_text(self, data: bytes) -> str:
        page_texts = []
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                for page in doc:
                    text = page.get_text("text")
                    if not text.strip():
                        # Scanned page: render and OCR it
                        pixmap = page.get_pixmap(matrix=fitz.Matrix(PDF_RENDER_ZOOM, PDF_RENDER_ZOOM))
                        text = self._image_to_text(pixmap.tobytes("png"))
                    page_texts.append(text)
        except OCRError:
            raise
        except Exception as e:  # pylint: disable=broad-except
            raise OCRError(f"Could not read PDF: {e}") from e
        return "\n".join(page_texts)
