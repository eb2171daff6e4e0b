"""Fetch an article page and extract its readable content."""

from typing import Optional

import httpx
from bs4 import BeautifulSoup
from readability import Document

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings
from shared.schemas.messages import ParsedArticle
from shared.utils.text import compress, reading_minutes

logger = get_logger("collector.reader")

EXCERPT_CHARS = 300
BROWSER_UA = "Mozilla/5.0 (compatible; daily-digest/1.0)"


def _meta(soup: BeautifulSoup, *keys: str) -> str:
    """First non-empty <meta> content among ``name=`` / ``property=`` keys."""
    for key in keys:
        tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
        if tag and tag.get("content"):
            return tag["content"].strip()
    return ""


def parse_html(html: str) -> Optional[ParsedArticle]:
    """Extract title, byline, body and metadata from a page; None when nothing is readable."""
    page = BeautifulSoup(html, "lxml")
    doc = Document(html)
    content_html = doc.summary(html_partial=True)
    text = compress(BeautifulSoup(content_html, "lxml").get_text(" ", strip=True))
    title = compress(_meta(page, "og:title") or doc.short_title() or "")

    if not text and not title:
        return None

    return ParsedArticle(
        title=title,
        byline=_meta(page, "author", "article:author"),
        excerpt=_meta(page, "og:description", "description", "twitter:description") or text[:EXCERPT_CHARS],
        full_content=content_html if text else "",
        image_url=_meta(page, "og:image", "twitter:image"),
        reading_minutes=reading_minutes(text),
    )


async def fetch_and_parse(url: str, timeout: Optional[float] = None) -> Optional[ParsedArticle]:
    """Fetch ``url`` and parse it; any failure yields None."""
    timeout = timeout or get_settings().news.http_timeout
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url, headers={"User-Agent": BROWSER_UA})
            response.raise_for_status()
        parsed = parse_html(response.text)
        if parsed is None:
            logger.info(f"No readable content at {url}")
        return parsed
    except Exception as e:
        logger.warning(f"Failed to fetch {url}: {e}")
        return None
