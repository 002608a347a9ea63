"""
Raw upload -> SourceDocument.

Supports PDF (text via pypdf), CSV and Excel (.xlsx, and .xls when the payload
is an OOXML workbook). Reading is I/O only; no vendor knowledge lives here.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath

from ..errors import ExtractionError

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 20

TABULAR_EXTENSIONS = {"csv", "xls", "xlsx", "xlsm"}
DOCUMENT_EXTENSIONS = {"pdf"}
SUPPORTED_EXTENSIONS = TABULAR_EXTENSIONS | DOCUMENT_EXTENSIONS


class DocumentKind(str, Enum):
    PDF = "pdf"
    TABULAR = "tabular"


def file_extension(file_name: str) -> str:
    return PurePath(file_name or "").suffix.lower().lstrip(".")


def kind_for(file_name: str) -> DocumentKind | None:
    ext = file_extension(file_name)
    if ext in DOCUMENT_EXTENSIONS:
        return DocumentKind.PDF
    if ext in TABULAR_EXTENSIONS:
        return DocumentKind.TABULAR
    return None


@dataclass(frozen=True)
class UploadedFile:
    name: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class SourceDocument:
    """
    Decoded document. PDFs carry `text` (page texts joined by newlines);
    tabular sources carry `rows` as trimmed strings.
    """

    file_name: str
    kind: DocumentKind
    text: str = ""
    rows: list[list[str]] = field(default_factory=list)

    @property
    def flat_text(self) -> str:
        """Whitespace-collapsed text, for patterns that may span line breaks."""
        if self.kind is DocumentKind.PDF:
            return " ".join(self.text.split())
        return " ".join(" ".join(c for c in row if c) for row in self.rows)


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value).strip()


def _decode_text(data: bytes) -> str:
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    return data.decode("latin-1")


def read_csv_rows(data: bytes) -> list[list[str]]:
    text = _decode_text(data)
    head = text[:4096]
    delimiter = ","
    if "," not in head:
        for candidate in ("\t", ";", "|"):
            if candidate in head:
                delimiter = candidate
                break
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
    return [[_cell(c) for c in row] for row in reader]


def read_workbook_rows(data: bytes) -> list[list[str]]:
    from openpyxl import load_workbook

    if not zipfile.is_zipfile(io.BytesIO(data)):
        raise ExtractionError(
            "Legacy binary .xls workbooks are not supported; re-save as .xlsx or .csv",
            kind=ExtractionError.UNSUPPORTED_FORMAT,
        )
    try:
        wb = load_workbook(io.BytesIO(data), data_only=True, read_only=True)
    except (zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise ExtractionError(f"Workbook could not be opened: {exc}") from exc
    try:
        sheet = wb.worksheets[0] if wb.worksheets else None
        if sheet is None:
            return []
        return [[_cell(c) for c in row] for row in sheet.iter_rows(values_only=True)]
    finally:
        wb.close()


def read_pdf_text(data: bytes) -> str:
    from pypdf import PdfReader
    from pypdf.errors import PdfReadError

    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, ValueError, KeyError, TypeError) as exc:
        raise ExtractionError(f"PDF could not be read: {exc}") from exc
    text = "\n".join(pages)
    logger.debug("Extracted %d characters of PDF text", len(text))
    return text


def read_document(upload: UploadedFile) -> SourceDocument:
    kind = kind_for(upload.name)
    if kind is None:
        raise ExtractionError(
            f"Unsupported file type: {upload.name}",
            kind=ExtractionError.UNSUPPORTED_FORMAT,
        )
    if not upload.data:
        raise ExtractionError(f"{upload.name} is empty")

    if kind is DocumentKind.PDF:
        text = read_pdf_text(upload.data)
        if len(text.strip()) < MIN_TEXT_LENGTH:
            raise ExtractionError("Unable to read PDF content")
        return SourceDocument(file_name=upload.name, kind=kind, text=text)

    if file_extension(upload.name) == "csv":
        rows = read_csv_rows(upload.data)
    else:
        rows = read_workbook_rows(upload.data)
    # Blank rows are kept; tabular layouts use them as section separators.
    if not any(any(row) for row in rows):
        raise ExtractionError(f"{upload.name} contains no rows")
    return SourceDocument(file_name=upload.name, kind=kind, rows=rows)


class DocumentReader:
    """
    Default reader used by the batch coordinator. Swappable so an OCR-backed
    reader can stand in for scanned PDFs.
    """

    def read(self, upload: UploadedFile) -> SourceDocument:
        return read_document(upload)
