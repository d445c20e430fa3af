"""Per-request resource accounting.

Every stage charges a fixed cost before it runs; a run that would go over
its budget stops with ResourceExhausted. One ResourceMeter belongs to one
workflow call and is never shared.

Functions/classes:
  ResourceMeter(budget).charge(kind, n=1)
  ResourceMeter.used / remaining()
  cost_of(kind) -> int
"""
import logging

logger = logging.getLogger(__name__)
try:
    logger.addHandler(logging.NullHandler())
except Exception:
    pass

COSTS = {
    "page_fetch": 10,
    "extract_text": 1,
    "build_prompt": 1,
    "text_generation": 100,
    "harvest_images": 5,
    "filter_candidates": 1,
    "image_fetch": 10,
    "vision_score": 200,
    "image_description": 200,
}


class ResourceExhausted(Exception):
    """The request's resource budget would be exceeded."""

    def __init__(self, kind: str, used: int, budget: int):
        super().__init__(f"resource budget exhausted at '{kind}' ({used}/{budget})")
        self.kind = kind
        self.used = used
        self.budget = budget


def cost_of(kind: str) -> int:
    try:
        return COSTS[kind]
    except KeyError:
        raise ValueError(f"unknown operation kind: {kind}") from None


class ResourceMeter:
    def __init__(self, budget: int):
        self.budget = int(budget)
        self.used = 0
        self.charges: dict[str, int] = {}

    def charge(self, kind: str, n: int = 1) -> int:
        """Charge n operations of `kind`; raises before going over budget."""
        amount = cost_of(kind) * n
        if self.used + amount > self.budget:
            logger.warning("Budget exhausted at %s: used=%d budget=%d", kind, self.used, self.budget)
            raise ResourceExhausted(kind, self.used + amount, self.budget)
        self.used += amount
        self.charges[kind] = self.charges.get(kind, 0) + amount
        return self.used

    def remaining(self) -> int:
        return max(0, self.budget - self.used)

    def __repr__(self) -> str:
        return f"ResourceMeter(used={self.used}, budget={self.budget})"


__all__ = ["COSTS", "ResourceExhausted", "ResourceMeter", "cost_of"]
