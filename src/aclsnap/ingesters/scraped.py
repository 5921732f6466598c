"""
Helpers for ingesters that parse a saved web page.

Scraped ingesters iterate the elements matching a root CSS selector and
extract account, name, role and status from each one. Elements without a
primary key are skipped.
"""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, Tag

from aclsnap.errors import ParseError

logger = logging.getLogger(__name__)

# Separator used when a single role is expected but several are present
AMBIGUOUS_ROLE_SEPARATOR = " or "


def parse_html(content: bytes) -> BeautifulSoup:
    """
    Load a saved HTML page.

    Raises:
        ParseError: If the document cannot be parsed
    """
    try:
        return BeautifulSoup(content, "html.parser")
    except Exception as e:
        raise ParseError(f"document: {e}") from e


def select_text(element: Tag, selector: str) -> str:
    """Get the concatenated, stripped text of every match of a selector."""
    return "".join(e.get_text() for e in element.select(selector)).strip()


def select_texts(element: Tag, selector: str) -> list[str]:
    """Get the stripped text of each match of a selector."""
    return [e.get_text().strip() for e in element.select(selector)]


def join_candidates(candidates: list[str]) -> str:
    """Collapse role candidates to one value, marking ambiguity."""
    if not candidates:
        return ""
    if len(candidates) > 1:
        logger.debug(f"Ambiguous role candidates: {candidates}")
    return AMBIGUOUS_ROLE_SEPARATOR.join(candidates)
