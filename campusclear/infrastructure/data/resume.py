"""
Resume text loading from plain text or PDF files.
"""
import os
import logging

from pypdf import PdfReader

logger = logging.getLogger("resume")


def read_pdf(file_path: str) -> str:
    reader = PdfReader(file_path)
    text = ""
    for page in reader.pages:
        text += (page.extract_text() or "") + "\n"
    return text.strip()


def load_resume_text(file_path: str) -> str:
    """Return the resume's text; PDFs are extracted page by page."""
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Resume not found: {file_path}")
    if file_path.lower().endswith(".pdf"):
        text = read_pdf(file_path)
    else:
        with open(file_path, 'r', encoding='utf-8') as f:
            text = f.read().strip()
    logger.info(f"Loaded resume {file_path} ({len(text)} chars)")
    return text
