"""Content extraction for FileLens - turns a file path into indexable text.

Text-like files are decoded as UTF-8 and PDFs are read with PyMuPDF. Anything
else (binary content, unsupported formats, oversized files, scanned or
encrypted PDFs) becomes a short metadata description so the file still takes
part in search. Expected conditions never raise; they are reported through
the returned ExtractionResult.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from loguru import logger

from core.types import ContentType
from filelens.metrics import MetricOperation, MetricsRecorder

# Text-based file extensions (read as UTF-8)
TEXT_EXTENSIONS = frozenset({
    # Documents
    "txt", "md", "markdown", "rst", "rtf",
    # Code
    "js", "ts", "jsx", "tsx", "py", "java", "c", "cpp", "h", "hpp",
    "cs", "go", "rs", "rb", "php", "swift", "kt", "scala", "r",
    # Config/Data
    "json", "yaml", "yml", "toml", "xml", "ini", "cfg", "conf",
    # Web
    "html", "htm", "css", "scss", "sass", "less", "svg",
    # Scripts
    "sh", "bash", "zsh", "ps1", "bat", "cmd",
    # Other
    "sql", "graphql", "proto", "env", "gitignore", "dockerfile",
    "log", "csv", "tsv",
})

DOCUMENT_EXTENSIONS = frozenset({"pdf"})

TRUNCATION_MARKER = "\n\n[Content truncated - file exceeds maximum extraction size]"
BINARY_SAMPLE_SIZE = 8000
BINARY_THRESHOLD = 0.1

_EXCESS_NEWLINES = re.compile(r"\n{4,}")
_CAMEL_JOIN = re.compile(r"([a-z])([A-Z])")
_INLINE_SPACE = re.compile(r"[ \t]+")


@dataclass
class ExtractionResult:
    """Tagged extraction outcome.

    ``content_type`` is FULL when ``content`` holds the file's own text and
    METADATA when it holds a generated description. ``success`` is False
    only when there is nothing to index at all (e.g. the file is missing).
    """

    success: bool
    content: Optional[str]
    content_type: ContentType
    file_type: str
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_metadata(self) -> bool:
        return self.content_type is ContentType.METADATA


class ContentExtractor:
    """Extracts plain text from files for indexing."""

    def __init__(
        self,
        max_file_size: int = 50 * 1024 * 1024,
        max_characters: int = 500_000,
        max_pdf_pages: int = 100,
        metrics: Optional[MetricsRecorder] = None,
    ):
        self.max_file_size = max_file_size
        self.max_characters = max_characters
        self.max_pdf_pages = max_pdf_pages
        self._metrics = metrics

    @staticmethod
    def supported_extensions() -> frozenset[str]:
        return TEXT_EXTENSIONS | DOCUMENT_EXTENSIONS

    def is_supported(self, file_path: Union[str, Path]) -> bool:
        """Check whether the file's own content can be extracted."""
        return _get_extension(Path(file_path)) in self.supported_extensions()

    def extract(self, file_path: Union[str, Path]) -> ExtractionResult:
        """Extract text content from a file.

        Args:
            file_path: Path to the file

        Returns:
            ExtractionResult with full text or a metadata description
        """
        path = Path(file_path)
        ext = _get_extension(path)

        try:
            size = path.stat().st_size
        except FileNotFoundError:
            return ExtractionResult(False, None, ContentType.METADATA, ext, error="File not found")
        except OSError as e:
            return ExtractionResult(False, None, ContentType.METADATA, ext, error=f"Extraction failed: {e}")

        if size > self.max_file_size:
            return self._metadata_result(path, f"File too large ({_format_size(size)})")

        if ext in TEXT_EXTENSIONS:
            return self._extract_text(path, size)

        if ext in DOCUMENT_EXTENSIONS:
            if self._metrics is not None:
                with self._metrics.timer(MetricOperation.PDF_EXTRACT):
                    return self._extract_pdf(path, size)
            return self._extract_pdf(path, size)

        return self._metadata_result(path, "Unsupported file type")

    def _extract_text(self, path: Path, size: int) -> ExtractionResult:
        ext = _get_extension(path)
        try:
            raw = path.read_bytes()
        except OSError as e:
            return self._metadata_result(path, f"Text extraction failed: {e}")

        content = raw.decode("utf-8", errors="replace")
        if has_binary_content(content):
            logger.debug(f"Binary content detected in {path}")
            return self._metadata_result(path, "Binary content detected")

        content, truncated = self._truncate(content)
        content = clean_text(content)

        return ExtractionResult(
            success=True,
            content=content,
            content_type=ContentType.FULL,
            file_type=ext,
            metadata={
                "original_size": size,
                "extracted_size": len(content),
                "was_truncated": truncated,
                "word_count": len(content.split()),
            },
        )

    def _extract_pdf(self, path: Path, size: int) -> ExtractionResult:
        import fitz  # PyMuPDF

        try:
            doc = fitz.open(str(path))
        except Exception as e:
            logger.warning(f"Failed to open PDF {path}: {e}")
            return self._metadata_result(path, "PDF appears to be corrupted")

        try:
            if doc.needs_pass:
                return self._metadata_result(path, "PDF is password protected")

            page_count = doc.page_count
            pages = []
            for page_num, page in enumerate(doc):
                if page_num >= self.max_pdf_pages:
                    break
                pages.append(page.get_text())
        except Exception as e:
            logger.warning(f"PDF extraction failed for {path}: {e}")
            return self._metadata_result(path, f"PDF extraction failed: {e}")
        finally:
            doc.close()

        content = "\n\n".join(pages)
        if not content.strip():
            return ExtractionResult(
                success=True,
                content=metadata_content(path, "PDF contains no extractable text (may be image-based/scanned)"),
                content_type=ContentType.METADATA,
                file_type="pdf",
                metadata={"page_count": page_count},
            )

        content = clean_pdf_text(content)
        content, truncated = self._truncate(content)

        return ExtractionResult(
            success=True,
            content=content,
            content_type=ContentType.FULL,
            file_type="pdf",
            metadata={
                "original_size": size,
                "extracted_size": len(content),
                "was_truncated": truncated,
                "page_count": page_count,
                "word_count": len(content.split()),
            },
        )

    def _truncate(self, content: str) -> tuple[str, bool]:
        if len(content) <= self.max_characters:
            return content, False
        return content[:self.max_characters] + TRUNCATION_MARKER, True

    def _metadata_result(self, path: Path, reason: str) -> ExtractionResult:
        # Metadata is still indexable, so this counts as success.
        return ExtractionResult(
            success=True,
            content=metadata_content(path, reason),
            content_type=ContentType.METADATA,
            file_type=_get_extension(path),
            error=reason,
        )


def metadata_content(path: Path, note: Optional[str] = None) -> str:
    """Describe a file by name, type and location for metadata-only indexing."""
    ext = _get_extension(path)
    content = (
        f"File: {path.name}\n"
        f"Type: {ext.upper()} file\n"
        f"Location: {path.parent}\n"
        f"Full Path: {path}\n"
    )
    if note:
        content += f"\nNote: {note}"
    return content


def has_binary_content(content: str) -> bool:
    """Null byte, or more than 10% control characters, in the leading sample."""
    sample = content[:BINARY_SAMPLE_SIZE]
    if not sample:
        return False
    if "\x00" in sample:
        return True
    non_printable = sum(1 for ch in sample if ord(ch) < 32 and ch not in "\t\n\r")
    return non_printable / len(sample) > BINARY_THRESHOLD


def clean_text(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return _EXCESS_NEWLINES.sub("\n\n\n", text).strip()


def clean_pdf_text(text: str) -> str:
    text = _CAMEL_JOIN.sub(r"\1 \2", text)
    text = text.replace("\f", "\n\n")
    text = _INLINE_SPACE.sub(" ", text)
    text = text.replace("\n ", "\n").replace(" \n", "\n")
    return _EXCESS_NEWLINES.sub("\n\n\n", text).strip()


def _get_extension(path: Path) -> str:
    if path.suffix:
        return path.suffix[1:].lower()
    # Dotfiles and bare names such as ".gitignore" or "Dockerfile"
    return path.name.lstrip(".").lower()


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"
