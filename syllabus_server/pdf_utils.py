# -*- coding: utf-8 -*-
import logging
import tempfile
from pathlib import Path

import docx
import pdfplumber
import requests
from docx.opc.exceptions import PackageNotFoundError

logger = logging.getLogger(__name__)

MIN_PDF_TEXT_LENGTH = 50
DOWNLOAD_TIMEOUT = 30


def _is_url(path_or_url: str) -> bool:
    return path_or_url.startswith('http://') or path_or_url.startswith('https://')


def _load_local_path(path_or_url: str) -> Path:
    """
    Loads a document from a local path or a URL and returns the local file path.
    :param path_or_url: A local file path or a URL to a PDF or text file.
    :return: The local file path to the document.
    """
    if _is_url(path_or_url):
        response = requests.get(path_or_url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
        suffix = Path(path_or_url.split('?', 1)[0]).suffix or ".pdf"
        with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp_file:
            tmp_file.write(response.content)
            return Path(tmp_file.name)
    path = Path(path_or_url)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return path


def extract_pdf_pages(path: Path) -> list[str]:
    """
    Extracts the text of each non-empty page of a PDF.
    :param path: A local PDF file.
    :return: The text contents of the PDF, one string per page
    """
    pages: list[str] = []
    with pdfplumber.open(path) as pdf:
        for page in pdf.pages:
            text = page.extract_text()
            if text:
                pages.append(text.strip())
    return pages


def extract_docx_paragraphs(path: Path) -> list[str]:
    """
    Extracts the non-empty paragraphs of a Word document, then its table rows.
    :param path: A local .docx file.
    :return: One string per paragraph or table row (cells joined by " | ")
    :raises ValueError: if the file is not a valid .docx package.
    """
    try:
        document = docx.Document(str(path))
    except PackageNotFoundError as e:
        raise ValueError(f"{path.name} is not a readable Word document") from e
    lines = [paragraph.text.strip() for paragraph in document.paragraphs if paragraph.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return lines


def load_document_text(path_or_url: str) -> str:
    """
    Returns the plain text of a syllabus document.

    PDFs are read page by page with pdfplumber and Word documents paragraph by
    paragraph with python-docx; anything else is read as UTF-8 text with
    undecodable bytes replaced.
    :raises ValueError: if a PDF yields almost no text (most likely a scan).
    """
    path = _load_local_path(path_or_url)
    try:
        return _read_document(path, path_or_url)
    finally:
        if _is_url(path_or_url):
            path.unlink(missing_ok=True)


def _read_document(path: Path, path_or_url: str) -> str:
    if path.suffix.lower() == ".docx":
        return "\n".join(extract_docx_paragraphs(path))
    if path.suffix.lower() != ".pdf":
        return path.read_text(encoding="utf-8", errors="replace")

    text = "\n\n".join(extract_pdf_pages(path))
    logger.debug("Extracted %d characters from %s", len(text), path)
    if len(text.strip()) < MIN_PDF_TEXT_LENGTH:
        raise ValueError(
            f"Could not extract text from {path_or_url}: the PDF appears to be scanned or image-based. "
            "Convert it to a text-based PDF or paste the syllabus text instead."
        )
    return text
