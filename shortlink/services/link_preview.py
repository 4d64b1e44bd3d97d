"""
Link Preview Service

When a social-media crawler follows a short link it gets a small HTML document
that mirrors the destination's Open Graph and Twitter card tags, plus a meta
refresh to the destination, instead of a bare 302.

Fetching the destination is an enrichment: it runs under a timeout and any
failure yields a preview without mirrored tags. It never fails the redirect.
"""

import html
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import httpx

from shortlink.core.setting import settings

logger = logging.getLogger(__name__)

PREVIEW_PROPERTIES = (
    "og:title",
    "og:description",
    "og:image",
    "og:url",
    "og:type",
    "og:site_name",
    "og:video",
    "og:video:url",
    "og:video:secure_url",
    "og:video:type",
    "og:video:width",
    "og:video:height",
    "twitter:card",
    "twitter:site",
    "twitter:title",
    "twitter:description",
    "twitter:image",
    "twitter:player",
    "twitter:player:width",
    "twitter:player:height",
)

MAX_DOCUMENT_BYTES = 512 * 1024
TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)


def _meta_re(attribute: str, prop: str) -> re.Pattern:
    return re.compile(
        rf"""<meta[^>]+{attribute}=["']{re.escape(prop)}["'][^>]+content=["']([^"']+)["']""",
        re.IGNORECASE,
    )


@dataclass
class LinkPreview:
    title: Optional[str] = None
    # (attribute, property, content), attribute is "property" or "name"
    tags: List[Tuple[str, str, str]] = field(default_factory=list)


def extract_preview(document: str) -> LinkPreview:
    """Pull Open Graph / Twitter meta tags and the page title out of an HTML document."""
    preview = LinkPreview()
    for prop in PREVIEW_PROPERTIES:
        match = _meta_re("property", prop).search(document)
        if match:
            preview.tags.append(("property", prop, html.unescape(match.group(1))))
            if prop == "og:title":
                preview.title = html.unescape(match.group(1))
            continue
        match = _meta_re("name", prop).search(document)
        if match:
            preview.tags.append(("name", prop, html.unescape(match.group(1))))

    if preview.title is None:
        title_match = TITLE_RE.search(document)
        if title_match:
            preview.title = html.unescape(title_match.group(1).strip())
            preview.tags.insert(0, ("property", "og:title", preview.title))
    return preview


async def fetch_preview(
    url: str,
    timeout: float = None,
    transport: httpx.AsyncBaseTransport = None,
) -> LinkPreview:
    """
    Fetch ``url`` and extract its preview tags.

    Returns an empty LinkPreview on timeout, network error, non-2xx status or
    an unreadable body.
    """
    try:
        async with httpx.AsyncClient(
            timeout=timeout or settings.PREVIEW_FETCH_TIMEOUT_SECONDS,
            follow_redirects=True,
            headers={"User-Agent": settings.PREVIEW_USER_AGENT},
            transport=transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            document = response.text[:MAX_DOCUMENT_BYTES]
    except (httpx.HTTPError, httpx.InvalidURL, UnicodeDecodeError) as e:
        logger.warning(f"Failed to fetch preview metadata from {url}: {e!r}")
        return LinkPreview()

    return extract_preview(document)


def render_preview_document(destination: str, fallback_title: str, preview: LinkPreview) -> str:
    """HTML page carrying the mirrored tags and an immediate refresh to the destination."""
    escape = html.escape
    meta_lines = "\n".join(
        f'  <meta {attribute}="{escape(prop)}" content="{escape(content)}">'
        for attribute, prop, content in preview.tags
    )
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '  <meta charset="UTF-8">\n'
        f'  <meta http-equiv="refresh" content="0;url={escape(destination)}">\n'
        f"  <title>{escape(preview.title or fallback_title)}</title>\n"
        f"{meta_lines}\n"
        "</head>\n"
        "<body>\n"
        f'  <a href="{escape(destination)}">{escape(destination)}</a>\n'
        "</body>\n"
        "</html>\n"
    )
