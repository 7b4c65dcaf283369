"""Document loading: turn a source file into an ordered list of page texts.

Handles:
- PDF text extraction, one page per PDF page
- Markdown with optional YAML frontmatter
- Plain text, paged on form feeds
"""
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List
import structlog
import yaml
from pypdf import PdfReader

from docqa.errors import InvalidConfiguration

logger = structlog.get_logger()

# Regex for YAML frontmatter (must be at start of file)
FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL)


@dataclass
class Page:
    """Text of one page of a source document."""

    text: str
    source_ref: str
    page_number: int


def _strip_frontmatter(content: str) -> str:
    """Remove YAML frontmatter from markdown content.

    The block is parsed only to report what was dropped; it never reaches the
    indexed text.
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return content

    try:
        frontmatter = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning("frontmatter_parse_error", error=str(e))
    else:
        keys = [str(key) for key in frontmatter] if isinstance(frontmatter, dict) else []
        logger.debug("frontmatter_stripped", keys=keys)

    return content[match.end():]


def _read_pdf(path: Path) -> List[Page]:
    reader = PdfReader(path)
    return [
        Page(
            text=page.extract_text() or "",
            source_ref=f"{path.name}#page={number}",
            page_number=number,
        )
        for number, page in enumerate(reader.pages, 1)
    ]


def _read_markdown(path: Path) -> List[Page]:
    body = _strip_frontmatter(path.read_text(encoding="utf-8"))
    return [Page(text=body, source_ref=path.name, page_number=1)]


def _read_text(path: Path) -> List[Page]:
    parts = path.read_text(encoding="utf-8").split("\f")
    if len(parts) == 1:
        return [Page(text=parts[0], source_ref=path.name, page_number=1)]
    return [
        Page(text=part, source_ref=f"{path.name}#page={number}", page_number=number)
        for number, part in enumerate(parts, 1)
    ]


READERS = {
    ".pdf": _read_pdf,
    ".md": _read_markdown,
    ".markdown": _read_markdown,
    ".txt": _read_text,
}


def load_pages(path: Path) -> List[Page]:
    """Load a document and return its non-blank pages in order.

    Args:
        path: Path to a .pdf, .md or .txt file

    Returns:
        List of Page objects

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidConfiguration: If the file type is not supported
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Document not found: {path}")

    reader = READERS.get(path.suffix.lower())
    if reader is None:
        raise InvalidConfiguration(
            f"Unsupported document type '{path.suffix}' "
            f"(supported: {', '.join(sorted(READERS))})"
        )

    pages = [page for page in reader(path) if page.text.strip()]

    logger.info(
        "document_loaded",
        path=str(path),
        page_count=len(pages),
        total_chars=sum(len(p.text) for p in pages),
    )

    return pages
