"""Summarize a page into link alt-text plus a topic via the text model."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

import config
from alt_text_models import CapabilityMissingError, PageContext
from alt_text_schema import _PAGE_PROMPT, _PAGE_PROMPT_NO_CONTENT, _PAGE_SYSTEM, PAGE_SCHEMA
from resource_budget import ResourceMeter

logger = logging.getLogger(__name__)
try:
    logger.addHandler(logging.NullHandler())
except Exception:
    pass


def parse_structured_reply(content: Any) -> Optional[dict]:
    """Return the JSON object in a model reply, or None.

    Accepts a bare JSON object or one wrapped in prose/code fences (the
    outermost {...} block is tried).
    """
    if isinstance(content, dict):
        return content
    if not isinstance(content, str) or not content.strip():
        return None
    raw = content.strip()
    try:
        obj = json.loads(raw)
        if isinstance(obj, dict):
            return obj
    except ValueError:
        pass
    start, end = raw.find("{"), raw.rfind("}")
    if start != -1 and end > start:
        try:
            obj = json.loads(raw[start:end + 1])
            if isinstance(obj, dict):
                return obj
        except ValueError:
            pass
    return None


def raw_reply_text(content: Any) -> str:
    """Plain text of a reply that carried no JSON object; a bare JSON string is unquoted."""
    if not isinstance(content, str):
        return ""
    raw = content.strip()
    if raw.startswith('"'):
        try:
            obj = json.loads(raw)
        except ValueError:
            return raw
        if isinstance(obj, str):
            return obj.strip()
    return raw


def _text_field(data: dict, key: str) -> Optional[str]:
    v = data.get(key)
    if isinstance(v, str) and v.strip():
        return v.strip()
    return None


def build_page_prompt(url: str, page_text: Optional[str]) -> str:
    limited = (page_text or "")[: config.PROMPT_TEXT_LIMIT]
    if not limited.strip():
        logger.warning("No page text extracted from %s; asking for a domain-based guess", url)
        return _PAGE_PROMPT_NO_CONTENT.format(URL=url)
    return _PAGE_PROMPT.format(URL=url, LIMIT=config.PROMPT_TEXT_LIMIT, TEXT=limited)


async def summarize_page(
    text_model,
    url: str,
    page_text: Optional[str],
    meter: Optional[ResourceMeter] = None,
    timeout: float = config.TEXT_TIMEOUT_S,
) -> PageContext:
    if text_model is None:
        raise CapabilityMissingError("text model capability is required to summarize a page")
    if meter is not None:
        meter.charge("build_prompt")
    prompt = build_page_prompt(url, page_text)
    logger.debug("Page prompt for %s: %d characters", url, len(prompt))
    if meter is not None:
        meter.charge("text_generation")
    reply = await asyncio.wait_for(text_model.predict(_PAGE_SYSTEM, prompt, PAGE_SCHEMA), timeout=timeout)
    content = reply.content or ""
    data = parse_structured_reply(content)
    if data is None:
        logger.info("Page summary for %s was not JSON; using raw content", url)
        return PageContext(alt_text=raw_reply_text(content), topic=None)
    return PageContext(alt_text=_text_field(data, "altText") or "", topic=_text_field(data, "topic"))


__all__ = ["summarize_page", "build_page_prompt", "parse_structured_reply", "raw_reply_text"]
