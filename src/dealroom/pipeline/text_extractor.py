"""
Text extraction for uploaded deal documents.

Downloads the object and converts it to plain text. The format is chosen by
the first matching rule; each rule matches on the file extension OR a
substring of the lower-cased MIME type:

1. Spreadsheets (xlsx/xls, *spreadsheet*) -> one CSV block per non-empty sheet
2. Word documents (docx, *wordprocessingml*) -> paragraph text
3. Plain text (csv/txt/md/json, *text/*, *csv*, *json*) -> UTF-8 decode
4. PDF (pdf, *pdf*) -> text layer of every page
5. Anything else -> a bracketed "not supported" placeholder

extract() never raises. Download or parse failures produce a bracketed
failure placeholder, which downstream stages treat as ordinary text.
"""

import asyncio
import csv
import io
from typing import Any, Callable

import structlog
from docx import Document as DocxDocument
from openpyxl import load_workbook
from pypdf import PdfReader

from ..clients.object_storage import ObjectStorageClient

logger = structlog.get_logger(__name__)

UNSUPPORTED_TEMPLATE = (
    '[Binary file - content extraction not supported for this format. '
    'File: {name}, Type: {type}]'
)
FAILURE_TEMPLATE = '[Failed to extract content from {name}]'


def _file_extension(file_name: str) -> str:
    if '.' not in file_name:
        return ''
    return file_name.rsplit('.', 1)[-1].lower()


def _cell_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def spreadsheet_to_text(data: bytes) -> str:
    """Render every non-empty sheet as ``--- Sheet: <name> ---`` + CSV rows."""
    workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        blocks = []
        for sheet in workbook.worksheets:
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator='\n')
            for row in sheet.iter_rows(values_only=True):
                cells = [_cell_text(v) for v in row]
                if not any(c.strip() for c in cells):
                    continue
                writer.writerow(cells)
            rows = buffer.getvalue().rstrip('\n')
            if rows.strip():
                blocks.append(f'--- Sheet: {sheet.title} ---\n{rows}')
        return '\n\n'.join(blocks)
    finally:
        workbook.close()


def word_to_text(data: bytes) -> str:
    """Paragraph text of a .docx, paragraphs separated by a blank line."""
    document = DocxDocument(io.BytesIO(data))
    return '\n\n'.join(p.text for p in document.paragraphs if p.text.strip())


def plain_to_text(data: bytes) -> str:
    return data.decode('utf-8', errors='replace')


def pdf_to_text(data: bytes) -> str:
    """Text layer of every page. Scanned PDFs legitimately yield ''."""
    reader = PdfReader(io.BytesIO(data))
    pages = [(page.extract_text() or '').strip() for page in reader.pages]
    return '\n\n'.join(p for p in pages if p)


# (extensions, mime substrings, converter), checked in order
EXTRACTION_RULES: tuple[tuple[frozenset[str], tuple[str, ...], Callable[[bytes], str]], ...] = (
    (frozenset({'xlsx', 'xls'}), ('spreadsheet',), spreadsheet_to_text),
    (frozenset({'docx'}), ('wordprocessingml',), word_to_text),
    (frozenset({'csv', 'txt', 'md', 'json'}), ('text/', 'csv', 'json'), plain_to_text),
    (frozenset({'pdf'}), ('pdf',), pdf_to_text),
)


def select_converter(file_name: str, mime_type: str | None) -> Callable[[bytes], str] | None:
    """Return the converter of the first matching rule, or None when unsupported."""
    ext = _file_extension(file_name)
    mime = (mime_type or '').lower()
    for extensions, mime_fragments, converter in EXTRACTION_RULES:
        if ext in extensions or any(fragment in mime for fragment in mime_fragments):
            return converter
    return None


class TextExtractor:
    """
    Converts stored document objects into plain text.

    The storage client is injected so tests can substitute an in-memory fake.
    """

    def __init__(self, storage: ObjectStorageClient):
        self.storage = storage

    async def extract(
        self,
        object_path: str,
        file_name: str,
        mime_type: str | None = None,
    ) -> str:
        """
        Download an object and extract its text.

        Args:
            object_path: Storage locator of the uploaded object
            file_name: Original file name (extension drives format detection)
            mime_type: Declared MIME type, if any

        Returns:
            Extracted text, or a bracketed placeholder for unsupported or
            unreadable files
        """
        converter = select_converter(file_name, mime_type)
        if converter is None:
            logger.info('text_extractor.unsupported', file_name=file_name, mime_type=mime_type)
            return UNSUPPORTED_TEMPLATE.format(
                name=file_name,
                type=mime_type or _file_extension(file_name) or 'unknown',
            )

        try:
            data = await self.storage.download(object_path)
            text = await asyncio.to_thread(converter, data)
        except Exception as e:
            logger.warning(
                'text_extractor.failed',
                file_name=file_name,
                converter=converter.__name__,
                error=str(e),
                error_type=type(e).__name__,
            )
            return FAILURE_TEMPLATE.format(name=file_name)

        logger.info(
            'text_extractor.complete',
            file_name=file_name,
            converter=converter.__name__,
            chars=len(text),
        )
        return text
