"""fetcher.py

Page retrieval and readable-text recovery.

`fetch_page` pulls the page through the network capability and decodes
it; `extract_text` turns the markup into one line of plain text for the
summarizer prompt.
"""
import asyncio
import logging
import re
from typing import Optional

import config
from alt_text_models import CapabilityMissingError, HttpStatusError
from resource_budget import ResourceMeter

# module logger
logger = logging.getLogger(__name__)
try:
    # ensure library modules don't emit warnings when the app hasn't configured logging
    logger.addHandler(logging.NullHandler())
except Exception:
    pass

_SCRIPT_RE = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_CHARSET_RE = re.compile(r"charset=[\"']?([\w.:-]+)", re.IGNORECASE)

# the only entities decoded
_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)


def _clean_text_blocks(txt: str) -> str:
    return re.sub(r"\s+", " ", txt).strip()


def decode_entities(s: str) -> str:
    for ent, ch in _ENTITIES:
        s = s.replace(ent, ch)
    return s


def extract_text(html) -> str:
    """Strip scripts, styles and tags from `html` and return at most
    PAGE_TEXT_LIMIT characters of whitespace-normalized text.

    Anything that is not a non-empty string yields "".
    """
    if not html or not isinstance(html, str):
        return ""
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = decode_entities(text)
    return _clean_text_blocks(text)[: config.PAGE_TEXT_LIMIT]


def _charset(content_type: Optional[str]) -> str:
    if content_type:
        m = _CHARSET_RE.search(content_type)
        if m:
            return m.group(1)
    return "utf-8"


def decode_body(content: bytes, content_type: Optional[str] = None) -> str:
    if isinstance(content, str):
        return content
    enc = _charset(content_type)
    try:
        return content.decode(enc, errors="replace")
    except LookupError:
        logger.debug("Unknown charset %r; falling back to utf-8", enc)
        return content.decode("utf-8", errors="replace")


def _header(headers, name: str) -> Optional[str]:
    if not headers:
        return None
    for k, v in headers.items():
        if k.lower() == name:
            return v
    return None


async def fetch_page(network, url: str, meter: Optional[ResourceMeter] = None, timeout: float = config.PAGE_FETCH_TIMEOUT_S) -> str:
    """Fetch `url` and return the decoded markup.

    Raises HttpStatusError for status >= 400; transport errors and
    asyncio.TimeoutError propagate to the caller.
    """
    if network is None:
        raise CapabilityMissingError("network capability is required to fetch pages")
    if meter is not None:
        meter.charge("page_fetch")
    logger.info("Fetching page %s", url)
    resp = await asyncio.wait_for(network.fetch(url), timeout=timeout)
    if resp.status >= 400:
        logger.warning("Page fetch failed for %s: HTTP %s", url, resp.status)
        raise HttpStatusError(resp.status, url)
    html = decode_body(resp.content, _header(resp.headers, "content-type"))
    logger.debug("Fetched %s: %d characters", url, len(html))
    return html


__all__ = ["extract_text", "fetch_page", "decode_body", "decode_entities"]
