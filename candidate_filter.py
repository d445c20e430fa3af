"""Drop images too small to matter and keep the largest few."""
import logging
from typing import Iterable, List

import config
from alt_text_models import ImageCandidate

logger = logging.getLogger(__name__)
try:
    logger.addHandler(logging.NullHandler())
except Exception:
    pass

MIN_AREA = 100
MIN_SIDE = 10


def is_eligible(img: ImageCandidate) -> bool:
    """True when the image could plausibly carry content.

    Images with no known dimensions are kept; they get judged on byte
    size once fetched.
    """
    w, h = img.width, img.height
    if img.area is not None and img.area > MIN_AREA:
        return True
    if w is not None and h is not None and w > MIN_SIDE and h > MIN_SIDE:
        return True
    if (w is not None and w > MIN_SIDE) or (h is not None and h > MIN_SIDE):
        return True
    return w is None and h is None


def _rank_key(img: ImageCandidate):
    # known area first, larger first; then wider first
    return (
        img.area is None,
        -(img.area or 0),
        img.width is None,
        -(img.width or 0),
    )


def filter_candidates(images: Iterable[ImageCandidate], max_candidates: int = config.MAX_CANDIDATES) -> List[ImageCandidate]:
    images = list(images or [])
    kept = [img for img in images if is_eligible(img)]
    kept.sort(key=_rank_key)
    result = kept[: max(0, max_candidates)]
    logger.debug("Filtered %d images down to %d candidates", len(images), len(result))
    return result


__all__ = ["filter_candidates", "is_eligible"]
