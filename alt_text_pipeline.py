"""alt_text_pipeline.py

The three workflows built on the stage modules:

  generate_page(url)      fetch -> extract text -> summarize
  generate_image(url)     fetch -> harvest -> filter -> score -> pick -> describe
  generate_combined(url)  page first, then the image path with the page as context

Each call owns one RequestContext (inputs, intermediate results, the stage
reached, and its ResourceMeter); nothing is shared between calls.
generate_page and generate_image let stage errors propagate.
generate_combined turns a page failure into an explanatory record and
simply leaves the image fields out when the image path fails. Running out
of budget is fatal in all three.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from alt_text_models import (
    ALT_TEXT_PLACEHOLDER,
    TOPIC_PLACEHOLDER,
    FetchErrorInfo,
    ImageCandidate,
    ImageResult,
    ModelErrorInfo,
    NoUsableImageError,
    PageContext,
    PageResult,
    ResultRecord,
    ScoredCandidate,
)
from candidate_filter import filter_candidates
from candidate_scorer import score_candidates, select_winner
from capabilities import Capabilities
from config import Settings
from error_classifier import classify_fetch, classify_model
from fetcher import extract_text, fetch_page
from image_describe import describe_image
from image_harvest import harvest_images
from page_summary import summarize_page
from resource_budget import ResourceExhausted, ResourceMeter

logger = logging.getLogger(__name__)
try:
    logger.addHandler(logging.NullHandler())
except Exception:
    pass

STAGE_FETCH = "fetch"
STAGE_EXTRACT = "extract"
STAGE_SUMMARIZE = "summarize"
STAGE_HARVEST = "harvest"
STAGE_FILTER = "filter"
STAGE_SCORE = "score"
STAGE_DESCRIBE = "describe"

# page failures at these stages are the site's fault, later ones the model's
FETCH_STAGES = (STAGE_FETCH, STAGE_EXTRACT)

SITE_FAILURE_PREFIX = "This site could not be analyzed"
MODEL_FAILURE_PREFIX = "Alt-text could not be generated"


def failed_stage(err: BaseException) -> Optional[str]:
    """Stage generate_page/generate_image were in when `err` escaped, if known."""
    return getattr(err, "pipeline_stage", None)


@dataclass
class RequestContext:
    url: str
    meter: ResourceMeter
    page_context_in: Optional[PageContext] = None
    stage: Optional[str] = None
    html: Optional[str] = None
    page_text: Optional[str] = None
    images: List[ImageCandidate] = field(default_factory=list)
    candidates: List[ImageCandidate] = field(default_factory=list)
    scored: List[ScoredCandidate] = field(default_factory=list)
    winner: Optional[ScoredCandidate] = None
    page_context: Optional[PageContext] = None

    def enter(self, stage: str) -> None:
        logger.debug("[%s] stage=%s used=%d", self.url, stage, self.meter.used)
        self.stage = stage


class CombinedResultBuilder:
    """Collects the page and image outcomes of one combined run.

    The page outcome is recorded first and decides whether the image path
    runs at all; the image outcome only ever adds fields.
    """

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    def __init__(self, url: str):
        self.url = url
        self.page_state = self.PENDING
        self.image_state = self.PENDING
        self.page: Optional[PageResult] = None
        self.image: Optional[ImageResult] = None
        self.fetch_error: Optional[FetchErrorInfo] = None
        self.model_error: Optional[ModelErrorInfo] = None
        self._failure_alt: Optional[str] = None

    @property
    def should_run_image(self) -> bool:
        return self.page_state == self.SUCCEEDED and self.image_state == self.PENDING

    def page_succeeded(self, page: PageResult) -> None:
        self.page = page
        self.page_state = self.SUCCEEDED

    def page_failed(self, fetch_error: Optional[FetchErrorInfo] = None, model_error: Optional[ModelErrorInfo] = None) -> None:
        self.page_state = self.FAILED
        self.image_state = self.SKIPPED
        self.fetch_error = fetch_error
        self.model_error = model_error
        if fetch_error is not None:
            self._failure_alt = f"{SITE_FAILURE_PREFIX}: {fetch_error.message}"
        elif model_error is not None:
            self._failure_alt = f"{MODEL_FAILURE_PREFIX}: {model_error.message}"

    def image_succeeded(self, image: ImageResult) -> None:
        self.image = image
        self.image_state = self.SUCCEEDED

    def image_failed(self, reason: str = "") -> None:
        if reason:
            logger.info("Image path skipped for %s: %s", self.url, reason)
        self.image_state = self.FAILED

    def build(self, resource_used: Optional[int] = None) -> ResultRecord:
        record = ResultRecord(url=self.url, resource_used=resource_used)
        if self.page_state == self.SUCCEEDED and self.page is not None:
            record.page_alt_text = self.page.alt_text or ALT_TEXT_PLACEHOLDER
            record.page_topic = self.page.topic or TOPIC_PLACEHOLDER
        elif self.page_state == self.FAILED:
            record.page_alt_text = self._failure_alt or ALT_TEXT_PLACEHOLDER
            record.fetch_error = self.fetch_error
            record.model_error = self.model_error
        if self.image_state == self.SUCCEEDED and self.image is not None:
            record.image_url = self.image.image_url
            record.image_alt_text = self.image.alt_text
            record.image_description = self.image.description
            record.image_width = self.image.image_width
            record.image_height = self.image.image_height
            record.image_size_bytes = self.image.image_size_bytes
        return record


class AltTextPipeline:
    def __init__(self, capabilities: Capabilities, settings: Optional[Settings] = None):
        self.caps = capabilities
        self.settings = settings or Settings()

    # ---- shared stage runners ----

    async def _load_page(self, ctx: RequestContext) -> str:
        ctx.enter(STAGE_FETCH)
        ctx.html = await fetch_page(self.caps.network, ctx.url, ctx.meter, self.settings.page_fetch_timeout)
        return ctx.html

    async def _run_page(self, ctx: RequestContext) -> PageResult:
        if ctx.html is None:
            await self._load_page(ctx)
        ctx.enter(STAGE_EXTRACT)
        ctx.meter.charge("extract_text")
        ctx.page_text = extract_text(ctx.html)
        ctx.enter(STAGE_SUMMARIZE)
        ctx.page_context = await summarize_page(
            self.caps.text_model,
            ctx.url,
            ctx.page_text,
            ctx.meter,
            self.settings.text_timeout,
        )
        return PageResult(
            url=ctx.url,
            alt_text=ctx.page_context.alt_text or ALT_TEXT_PLACEHOLDER,
            topic=ctx.page_context.topic or TOPIC_PLACEHOLDER,
            resource_used=ctx.meter.used,
        )

    async def _run_image(self, ctx: RequestContext) -> ImageResult:
        if ctx.html is None:
            await self._load_page(ctx)
        ctx.enter(STAGE_HARVEST)
        ctx.meter.charge("harvest_images")
        ctx.images = harvest_images(ctx.html, ctx.url)
        ctx.enter(STAGE_FILTER)
        ctx.meter.charge("filter_candidates")
        ctx.candidates = filter_candidates(ctx.images, self.settings.max_candidates)
        logger.info("%s: %d images harvested, %d candidates", ctx.url, len(ctx.images), len(ctx.candidates))
        ctx.enter(STAGE_SCORE)
        context = ctx.page_context_in
        ctx.scored = await score_candidates(
            ctx.candidates,
            self.caps.network,
            self.caps.vision_model,
            context,
            ctx.meter,
            self.settings,
        )
        ctx.winner = select_winner(ctx.scored)
        if ctx.winner is None:
            raise NoUsableImageError(f"no usable image found on {ctx.url}")
        win = ctx.winner
        logger.info("Selected %s (score %.1f, %s)", win.candidate.url[:120], win.score, win.score_source)
        ctx.enter(STAGE_DESCRIBE)
        desc = await describe_image(
            self.caps.vision_model,
            ctx.url,
            win,
            context,
            ctx.meter,
            self.settings.vision_timeout,
        )
        alt = desc.alt_text or (win.candidate.alt or "").strip() or ALT_TEXT_PLACEHOLDER
        return ImageResult(
            url=ctx.url,
            image_url=win.candidate.url,
            alt_text=alt,
            description=desc.description,
            image_width=win.candidate.width,
            image_height=win.candidate.height,
            image_size_bytes=win.candidate.size_bytes,
            score=win.score,
            score_source=win.score_source,
            resource_used=ctx.meter.used,
        )

    # ---- workflows ----

    async def generate_page(self, url: str) -> PageResult:
        ctx = RequestContext(url=url, meter=ResourceMeter(self.settings.page_budget))
        try:
            return await self._run_page(ctx)
        except Exception as e:
            e.pipeline_stage = ctx.stage
            raise

    async def generate_image(self, url: str, page_context: Optional[PageContext] = None) -> ImageResult:
        ctx = RequestContext(url=url, meter=ResourceMeter(self.settings.image_budget), page_context_in=page_context)
        try:
            return await self._run_image(ctx)
        except Exception as e:
            e.pipeline_stage = ctx.stage
            raise

    async def generate_combined(self, url: str) -> ResultRecord:
        ctx = RequestContext(url=url, meter=ResourceMeter(self.settings.combined_budget))
        builder = CombinedResultBuilder(url)
        try:
            builder.page_succeeded(await self._run_page(ctx))
        except ResourceExhausted:
            raise
        except Exception as e:
            if ctx.stage in FETCH_STAGES:
                info = classify_fetch(e, url)
                logger.warning("Page fetch failed for %s: %s (%s)", url, info.kind, info.message)
                builder.page_failed(fetch_error=info)
            else:
                info = classify_model(e, self.caps.model_target)
                logger.warning("Page summary failed for %s: %s (%s)", url, info.kind, info.message)
                builder.page_failed(model_error=info)

        if builder.should_run_image:
            summary = ctx.page_context
            # the image prompts only get page context when both fields are known
            if summary is not None and summary.alt_text and summary.topic:
                ctx.page_context_in = summary
            try:
                builder.image_succeeded(await self._run_image(ctx))
            except ResourceExhausted:
                raise
            except Exception as e:
                builder.image_failed(str(e) or type(e).__name__)

        record = builder.build(ctx.meter.used)
        logger.info("Combined result for %s: page=%s image=%s used=%d", url, builder.page_state, builder.image_state, ctx.meter.used)
        return record


__all__ = ["AltTextPipeline", "CombinedResultBuilder", "RequestContext", "FETCH_STAGES", "failed_stage"]
