"""capabilities.py

The three outside services the pipeline calls (network, text model and
vision model), described as Protocols, plus the default implementations
the CLI uses:

  HttpxNetwork           -- httpx.AsyncClient, follows redirects
  OpenAICompatibleModel  -- openai.AsyncOpenAI against any OpenAI-compatible
                            server (LM Studio by default); serves both the
                            text and the vision role

Tests swap these for the deterministic stubs in llm_stub.py.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx
import openai
from openai import AsyncOpenAI

import config
from alt_text_models import ImageData

logger = logging.getLogger(__name__)
try:
    logger.addHandler(logging.NullHandler())
except Exception:
    pass

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


@dataclass
class FetchResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    content: bytes = b""


@dataclass
class ModelReply:
    content: str = ""
    tool_calls: Optional[List[Any]] = None


@runtime_checkable
class NetworkCapability(Protocol):
    async def fetch(self, url: str) -> FetchResponse: ...


@runtime_checkable
class TextModelCapability(Protocol):
    async def predict(self, system: str, user: str, response_schema: Optional[dict] = None) -> ModelReply: ...


@runtime_checkable
class VisionModelCapability(Protocol):
    async def predict_with_vision(
        self,
        system: str,
        user_text: str,
        image: ImageData,
        response_schema: Optional[dict] = None,
    ) -> ModelReply: ...


@dataclass
class Capabilities:
    """What a pipeline run is allowed to call. Any member may be None."""

    network: Optional[NetworkCapability] = None
    text_model: Optional[TextModelCapability] = None
    vision_model: Optional[VisionModelCapability] = None
    # where the models live; only used to label model errors
    model_target: Optional[str] = None


class HttpxNetwork:
    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = config.IMAGE_FETCH_TIMEOUT_S):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=10),
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT, "Accept": "*/*"},
        )

    async def fetch(self, url: str) -> FetchResponse:
        resp = await self._client.get(url)
        logger.debug("GET %s -> %s (%d bytes)", url, resp.status_code, len(resp.content))
        return FetchResponse(status=resp.status_code, headers=dict(resp.headers), content=resp.content)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()


def normalize_base_url(url: Optional[str]) -> str:
    """Strip trailing slashes and make sure the URL ends in /v1."""
    base = (url or config.DEFAULT_LLM_URL).rstrip("/")
    if not base.endswith("/v1"):
        base = f"{base}/v1"
    return base


class OpenAICompatibleModel:
    """Chat-completions client used for both the text and the vision role.

    When no model id is configured the first model the server lists under
    /models is used; the lookup happens once and is cached.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = config.TEMPERATURE,
        client: Optional[AsyncOpenAI] = None,
        max_retries: int = 3,
    ):
        self.base_url = normalize_base_url(base_url)
        self.model = model
        self.temperature = temperature
        self.max_retries = max_retries
        # retries are handled here so rate limits back off visibly in the logs
        self._client = client or AsyncOpenAI(
            base_url=self.base_url,
            api_key=api_key or config.LLM_API_KEY,
            max_retries=0,
        )

    async def resolve_model(self) -> str:
        if self.model:
            return self.model
        page = await self._client.models.list()
        models = list(getattr(page, "data", None) or [])
        if not models:
            raise RuntimeError(f"No models loaded on {self.base_url}")
        self.model = models[0].id
        logger.info("Using model %s from %s", self.model, self.base_url)
        return self.model

    async def _chat_with_retries(self, messages: list, response_schema: Optional[dict]) -> ModelReply:
        model = await self.resolve_model()
        kwargs: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if response_schema:
            kwargs["response_format"] = {"type": "json_schema", "json_schema": response_schema}
        backoff = 0.5
        for attempt in range(self.max_retries + 1):
            try:
                resp = await self._client.chat.completions.create(**kwargs)
                break
            except openai.RateLimitError:
                if attempt >= self.max_retries:
                    raise
                wait = backoff * (2 ** attempt)
                logger.warning("Rate limited by %s; retrying in %.1fs", self.base_url, wait)
                await asyncio.sleep(wait)
        choices = getattr(resp, "choices", None) or []
        if not choices:
            return ModelReply(content="")
        msg = choices[0].message
        return ModelReply(content=msg.content or "", tool_calls=getattr(msg, "tool_calls", None))

    async def predict(self, system: str, user: str, response_schema: Optional[dict] = None) -> ModelReply:
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        return await self._chat_with_retries(messages, response_schema)

    async def predict_with_vision(
        self,
        system: str,
        user_text: str,
        image: ImageData,
        response_schema: Optional[dict] = None,
    ) -> ModelReply:
        messages = [
            {"role": "system", "content": system},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": user_text},
                    {"type": "image_url", "image_url": {"url": image.data_uri}},
                ],
            },
        ]
        return await self._chat_with_retries(messages, response_schema)

    async def aclose(self) -> None:
        await self._client.close()


def default_capabilities(
    llm_url: Optional[str] = None,
    text_model: Optional[str] = config.TEXT_MODEL,
    vision_model: Optional[str] = config.VISION_MODEL,
) -> Capabilities:
    """Network plus text/vision models against one OpenAI-compatible server."""
    base = normalize_base_url(llm_url or config.LLM_URL)
    text = OpenAICompatibleModel(base_url=base, model=text_model)
    vision = text if vision_model in (None, text_model) else OpenAICompatibleModel(base_url=base, model=vision_model)
    return Capabilities(network=HttpxNetwork(), text_model=text, vision_model=vision, model_target=base)


async def close_capabilities(caps: Capabilities) -> None:
    seen = set()
    for member in (caps.network, caps.text_model, caps.vision_model):
        if member is None or id(member) in seen:
            continue
        seen.add(id(member))
        closer = getattr(member, "aclose", None)
        if closer is not None:
            await closer()


__all__ = [
    "FetchResponse",
    "ModelReply",
    "NetworkCapability",
    "TextModelCapability",
    "VisionModelCapability",
    "Capabilities",
    "HttpxNetwork",
    "OpenAICompatibleModel",
    "normalize_base_url",
    "default_capabilities",
    "close_capabilities",
]
