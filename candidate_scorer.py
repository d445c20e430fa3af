"""candidate_scorer.py

Fetch the filtered candidates and rate how informative each one is.

Two fan-out stages, each one task per candidate via asyncio.gather:
  fetch  -- download bytes; a failed download drops that candidate only
  score  -- ask the vision model for a 0-100 score; any failure falls back
            to a size-based estimate capped at FALLBACK_SCORE_CAP

ResourceExhausted is never treated as a per-candidate failure.
"""
import asyncio
import base64
import logging
import math
from typing import List, Optional
from urllib.parse import unquote_to_bytes

import config
from alt_text_models import (
    ImageCandidate,
    ImageData,
    PageContext,
    SCORE_ESTIMATED,
    SCORE_VISION,
    ScoredCandidate,
)
from alt_text_schema import _SCORE_CONTEXT, _SCORE_PROMPT, _SCORE_SYSTEM, _SCORE_TAIL, SCORE_SCHEMA
from config import Settings
from page_summary import parse_structured_reply
from resource_budget import ResourceExhausted, ResourceMeter

logger = logging.getLogger(__name__)
try:
    logger.addHandler(logging.NullHandler())
except Exception:
    pass

DEFAULT_IMAGE_TYPE = "image/jpeg"


def _decode_data_uri(uri: str) -> ImageData:
    header, sep, payload = uri.partition(",")
    if not sep:
        raise ValueError("malformed data URI")
    meta = header[len("data:"):]
    content_type = meta.split(";")[0] or DEFAULT_IMAGE_TYPE
    if meta.endswith(";base64"):
        raw = base64.b64decode(payload)
    else:
        raw = unquote_to_bytes(payload)
    return ImageData(data_uri=uri, size_bytes=len(raw), content_type=content_type)


async def fetch_image(network, url: str, timeout: float) -> ImageData:
    """Download one image and wrap it as a base64 data URI."""
    if url.startswith("data:"):
        return _decode_data_uri(url)
    if network is None:
        raise RuntimeError("no network capability")
    resp = await asyncio.wait_for(network.fetch(url), timeout=timeout)
    if resp.status >= 400:
        raise RuntimeError(f"HTTP {resp.status}")
    headers = {k.lower(): v for k, v in (resp.headers or {}).items()}
    content_type = (headers.get("content-type") or DEFAULT_IMAGE_TYPE).split(";")[0].strip() or DEFAULT_IMAGE_TYPE
    data = resp.content or b""
    encoded = base64.b64encode(data).decode("ascii")
    return ImageData(data_uri=f"data:{content_type};base64,{encoded}", size_bytes=len(data), content_type=content_type)


async def fetch_candidate_images(
    candidates: List[ImageCandidate],
    network,
    meter: Optional[ResourceMeter] = None,
    timeout: float = config.IMAGE_FETCH_TIMEOUT_S,
) -> List[ScoredCandidate]:
    """Fetch every candidate concurrently; failures are dropped.

    Survivors come back in input order with `size_bytes` filled in and a
    provisional score of 0.
    """
    if not candidates:
        return []
    if meter is not None:
        meter.charge("image_fetch", len(candidates))

    async def _one(cand: ImageCandidate) -> Optional[ScoredCandidate]:
        try:
            image = await fetch_image(network, cand.url, timeout)
        except ResourceExhausted:
            raise
        except Exception as e:
            logger.warning("Dropping image %s: %s", cand.url[:120], str(e) or type(e).__name__)
            return None
        cand.size_bytes = image.size_bytes
        return ScoredCandidate(candidate=cand, image=image, score=0.0, score_source=SCORE_ESTIMATED)

    results = await asyncio.gather(*(_one(c) for c in candidates))
    return [r for r in results if r is not None]


def fallback_score(candidate: ImageCandidate, cap: float = config.FALLBACK_SCORE_CAP) -> float:
    if candidate.area:
        return min(cap, candidate.area / 10000)
    if candidate.size_bytes:
        return min(cap, candidate.size_bytes / 100000)
    return 0.0


def build_score_prompt(candidate: ImageCandidate, page_context: Optional[PageContext] = None) -> str:
    alt_line = f"Alt text: {candidate.alt}" if candidate.alt else "No alt text available"
    dim_line = f"Dimensions: {candidate.width}x{candidate.height}" if candidate.width and candidate.height else ""
    prompt = _SCORE_PROMPT.format(IMAGE_URL=candidate.url, ALT_LINE=alt_line, DIM_LINE=dim_line)
    if page_context is not None:
        prompt += _SCORE_CONTEXT.format(TOPIC=page_context.topic or "", ALT=page_context.alt_text or "")
    return prompt + _SCORE_TAIL


def _vision_score(content: str) -> Optional[float]:
    data = parse_structured_reply(content)
    if not data:
        return None
    score = data.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float, str)):
        return None
    try:
        score = float(score)
    except ValueError:
        return None
    if math.isnan(score):
        return None
    return max(0.0, min(100.0, score))


async def _score_one(
    scored: ScoredCandidate,
    vision_model,
    page_context: Optional[PageContext],
    timeout: float,
    cap: float,
) -> ScoredCandidate:
    cand = scored.candidate
    if vision_model is not None:
        try:
            reply = await asyncio.wait_for(
                vision_model.predict_with_vision(
                    _SCORE_SYSTEM,
                    build_score_prompt(cand, page_context),
                    scored.image,
                    SCORE_SCHEMA,
                ),
                timeout=timeout,
            )
            score = _vision_score(reply.content)
            if score is not None:
                logger.debug("Vision score %.1f for %s", score, cand.url[:120])
                scored.score, scored.score_source = score, SCORE_VISION
                return scored
            logger.info("Unusable vision score for %s; estimating", cand.url[:120])
        except ResourceExhausted:
            raise
        except Exception as e:
            logger.warning("Vision scoring failed for %s: %s; estimating", cand.url[:120], str(e) or type(e).__name__)
    scored.score, scored.score_source = fallback_score(cand, cap), SCORE_ESTIMATED
    return scored


async def score_candidates(
    candidates: List[ImageCandidate],
    network,
    vision_model=None,
    page_context: Optional[PageContext] = None,
    meter: Optional[ResourceMeter] = None,
    settings: Optional[Settings] = None,
) -> List[ScoredCandidate]:
    """Fetch and score `candidates`; empty when no download succeeded."""
    settings = settings or Settings()
    fetched = await fetch_candidate_images(candidates, network, meter, settings.image_fetch_timeout)
    if not fetched:
        logger.info("No candidate image could be fetched")
        return []
    if vision_model is not None and meter is not None:
        meter.charge("vision_score", len(fetched))
    return list(await asyncio.gather(*(
        _score_one(s, vision_model, page_context, settings.vision_timeout, settings.fallback_score_cap)
        for s in fetched
    )))


def select_winner(scored: List[ScoredCandidate]) -> Optional[ScoredCandidate]:
    """Highest score; on a tie the earliest entry stays."""
    best = None
    for s in scored:
        if best is None or s.score > best.score:
            best = s
    return best


__all__ = [
    "fetch_image",
    "fetch_candidate_images",
    "fallback_score",
    "build_score_prompt",
    "score_candidates",
    "select_winner",
]
