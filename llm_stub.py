"""Deterministic capability stubs for tests/CI.

Usage patterns:
  from llm_stub import StubNetwork, StubTextModel, StubVisionModel
  caps = Capabilities(network=StubNetwork({...}), text_model=StubTextModel(), ...)

Keeps production modules free of test-only branching. Each stub records
its calls so tests can assert on prompts and ordering.

Routes for StubNetwork map a URL to one of:
  bytes / str          -> 200 with that body
  (status, body)       -> that status
  (status, body, hdrs) -> that status and headers
  Exception instance   -> raised on fetch
"""
from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, List, Optional, Union

from alt_text_models import ImageData
from capabilities import FetchResponse, ModelReply

Route = Union[bytes, str, tuple, BaseException]


class StubNetwork:
    def __init__(self, routes: Optional[Dict[str, Route]] = None, default_status: int = 404):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.default_status = default_status
        self.calls: List[str] = []

    async def fetch(self, url: str) -> FetchResponse:
        self.calls.append(url)
        route = self.routes.get(url)
        if isinstance(route, BaseException):
            raise route
        if route is None:
            return FetchResponse(status=self.default_status, headers={}, content=b"")
        if isinstance(route, tuple):
            status, body = route[0], route[1]
            headers = dict(route[2]) if len(route) > 2 else {}
        else:
            status, body, headers = 200, route, {}
        if isinstance(body, str):
            body = body.encode("utf-8")
            headers.setdefault("content-type", "text/html; charset=utf-8")
        else:
            headers.setdefault("content-type", "image/jpeg")
        return FetchResponse(status=status, headers=headers, content=body)


def _stub_alt(text: str) -> Dict[str, Any]:
    h = hashlib.sha1(text.encode("utf-8")).hexdigest()[:8]
    return {"altText": f"Stub alt-text {h}", "topic": "Stub topic"}


class StubTextModel:
    """Answers every predict() with `reply` (str/dict) or a hashed default."""

    def __init__(self, reply: Union[str, dict, None] = None, error: Optional[BaseException] = None):
        self.reply = reply
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def predict(self, system: str, user: str, response_schema: Optional[dict] = None) -> ModelReply:
        self.calls.append({"system": system, "user": user, "schema": response_schema})
        if self.error is not None:
            raise self.error
        reply = self.reply if self.reply is not None else _stub_alt(user)
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return ModelReply(content=content)


class StubVisionModel:
    """Vision stub that tells scoring calls from description calls by schema name.

    `scores` maps image data URI or candidate URL (found in the prompt) to
    a score or an exception; `describe` is the description reply.
    """

    def __init__(
        self,
        scores: Optional[Dict[str, Any]] = None,
        default_score: Any = 50,
        describe: Union[str, dict, None] = None,
        error: Optional[BaseException] = None,
    ):
        self.scores = dict(scores or {})
        self.default_score = default_score
        self.describe = describe
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def _score_for(self, user_text: str, image: ImageData) -> Any:
        for key, value in self.scores.items():
            if key == image.data_uri or key in user_text:
                return value
        return self.default_score

    async def predict_with_vision(
        self,
        system: str,
        user_text: str,
        image: ImageData,
        response_schema: Optional[dict] = None,
    ) -> ModelReply:
        kind = (response_schema or {}).get("name", "")
        self.calls.append({"system": system, "user": user_text, "image": image, "kind": kind})
        if self.error is not None:
            raise self.error
        if kind == "interestingness_score":
            value = self._score_for(user_text, image)
            if isinstance(value, BaseException):
                raise value
            if isinstance(value, str):
                return ModelReply(content=value)
            return ModelReply(content=json.dumps({"score": value}))
        reply = self.describe if self.describe is not None else {
            "altText": "Stub image alt-text",
            "description": "Stub image description",
        }
        return ModelReply(content=reply if isinstance(reply, str) else json.dumps(reply))


__all__ = ["StubNetwork", "StubTextModel", "StubVisionModel"]
