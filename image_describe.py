"""Describe the winning image through the vision model.

Same structured-reply handling as page_summary: a JSON object gives
altText/description, anything else is taken as the alt-text itself.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import config
from alt_text_models import CapabilityMissingError, ImageDescription, PageContext, ScoredCandidate
from alt_text_schema import _IMAGE_CONTEXT, _IMAGE_PROMPT, _IMAGE_SYSTEM, _IMAGE_TAIL, IMAGE_SCHEMA
from page_summary import parse_structured_reply, raw_reply_text
from resource_budget import ResourceMeter

logger = logging.getLogger(__name__)
try:
    logger.addHandler(logging.NullHandler())
except Exception:
    pass


def build_image_prompt(url: str, scored: ScoredCandidate, page_context: Optional[PageContext] = None) -> str:
    cand = scored.candidate
    alt_line = f"Existing alt attribute: {cand.alt}" if cand.alt else "No existing alt attribute"
    prompt = _IMAGE_PROMPT.format(URL=url, IMAGE_URL=cand.url, ALT_LINE=alt_line)
    if page_context is not None:
        prompt += _IMAGE_CONTEXT.format(TOPIC=page_context.topic or "", ALT=page_context.alt_text or "")
    return prompt + _IMAGE_TAIL


async def describe_image(
    vision_model,
    url: str,
    scored: ScoredCandidate,
    page_context: Optional[PageContext] = None,
    meter: Optional[ResourceMeter] = None,
    timeout: float = config.VISION_TIMEOUT_S,
) -> ImageDescription:
    if vision_model is None:
        raise CapabilityMissingError("vision model capability is required to describe an image")
    prompt = build_image_prompt(url, scored, page_context)
    if meter is not None:
        meter.charge("image_description")
    reply = await asyncio.wait_for(
        vision_model.predict_with_vision(_IMAGE_SYSTEM, prompt, scored.image, IMAGE_SCHEMA),
        timeout=timeout,
    )
    content = reply.content or ""
    data = parse_structured_reply(content)
    if data is None:
        return ImageDescription(alt_text=raw_reply_text(content))
    alt = data.get("altText")
    desc = data.get("description")
    return ImageDescription(
        alt_text=alt.strip() if isinstance(alt, str) else "",
        description=desc.strip() if isinstance(desc, str) and desc.strip() else None,
    )


__all__ = ["describe_image", "build_image_prompt"]
