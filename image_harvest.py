"""image_harvest.py

Find every image a page references and return them as ImageCandidate
records. Four passes run over one BeautifulSoup tree:

  1. <img> tags (src, data-src, srcset)
  2. <picture> groups (<source srcset> variants around a nested <img>)
  3. inline style background / background-image url(...) values
  4. lazy-load data-bg / data-background attributes

Results are merged in pass order and de-duplicated by absolute URL; the
first occurrence wins. A malformed tag is skipped on its own and never
stops the scan.
"""
import logging
import re
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from alt_text_models import (
    ImageCandidate,
    SOURCE_CSS_BACKGROUND,
    SOURCE_DATA_BG,
    SOURCE_IMG,
    SOURCE_PICTURE,
)

logger = logging.getLogger(__name__)
try:
    logger.addHandler(logging.NullHandler())
except Exception:
    pass

# inline data: URIs shorter than this are icons or placeholders
MIN_DATA_URI_LENGTH = 1000

_ICON_TOKENS = ("/icon/", "/sprite/", "pixel.gif", "tracking.gif", "1x1", "spacer.gif")
_DATA_BG_ATTRS = ("data-bg", "data-background")

_LEADING_INT_RE = re.compile(r"\s*(\d+)")
_DESCRIPTOR_RE = re.compile(r"^(\d+(?:\.\d+)?)([wx])$", re.IGNORECASE)
_BACKGROUND_DECL_RE = re.compile(r"background(?:-image)?\s*:", re.IGNORECASE)
_CSS_URL_RE = re.compile(r"url\(\s*(['\"]?)(.*?)\1\s*\)", re.IGNORECASE | re.DOTALL)


def resolve_url(url: str, base_url: str) -> str:
    """Absolute form of `url` against `base_url`; unresolvable input comes back unchanged."""
    try:
        return urljoin(base_url or "", url)
    except ValueError:
        return url


def _leading_int(value) -> Optional[int]:
    if value is None:
        return None
    m = _LEADING_INT_RE.match(str(value))
    return int(m.group(1)) if m else None


def _attr(tag, name: str) -> Optional[str]:
    v = tag.get(name)
    if isinstance(v, list):
        v = " ".join(v)
    if v is None:
        return None
    v = str(v).strip()
    return v or None


def _is_small_data_uri(url: str) -> bool:
    return url.startswith("data:") and len(url) < MIN_DATA_URI_LENGTH


def _is_icon_like(url: str) -> bool:
    low = url.lower()
    return any(tok in low for tok in _ICON_TOKENS)


def _srcset_entries(srcset: str) -> List[Tuple[str, str, float]]:
    """Split a srcset into (url, unit, size) triples.

    unit is 'w' or 'x'; an entry without a descriptor counts as 1x.
    Entries with an unreadable descriptor are dropped.
    """
    out = []
    for entry in srcset.split(","):
        parts = entry.strip().split()
        if not parts:
            continue
        url = parts[0]
        if len(parts) == 1:
            out.append((url, "x", 1.0))
            continue
        m = _DESCRIPTOR_RE.match(parts[1])
        if not m:
            continue
        out.append((url, m.group(2).lower(), float(m.group(1))))
    return out


def parse_srcset(srcset: Optional[str], base_url: str) -> Optional[str]:
    """Pick the largest variant of a srcset and return its absolute URL.

    Width descriptors win when present; otherwise density descriptors
    are compared at x * 100. Ties keep the earliest entry.
    """
    if not srcset:
        return None
    entries = _srcset_entries(srcset)
    widths = [(u, s) for u, unit, s in entries if unit == "w"]
    pool = widths or [(u, s * 100) for u, unit, s in entries if unit == "x"]
    best_url, best_size = None, 0.0
    for u, size in pool:
        if size > best_size:
            best_url, best_size = u, size
    return resolve_url(best_url, base_url) if best_url else None


def _largest_width_variant(srcsets: List[str], base_url: str) -> Optional[str]:
    best_url, best_size = None, 0.0
    for ss in srcsets:
        for u, unit, size in _srcset_entries(ss):
            if unit == "w" and size > best_size:
                best_url, best_size = u, size
    return resolve_url(best_url, base_url) if best_url else None


def _dimensions(tag) -> Tuple[Optional[int], Optional[int]]:
    return _leading_int(tag.get("width")), _leading_int(tag.get("height"))


def _harvest_img_tags(soup, base_url: str) -> List[ImageCandidate]:
    out = []
    for img in soup.find_all("img"):
        try:
            src = _attr(img, "src") or _attr(img, "data-src")
            if not src:
                continue
            if _is_small_data_uri(src) or _is_icon_like(src):
                continue
            url = resolve_url(src, base_url)
            srcset = _attr(img, "srcset")
            url = parse_srcset(srcset, base_url) or url
            width, height = _dimensions(img)
            out.append(ImageCandidate(url=url, source_kind=SOURCE_IMG, width=width, height=height, alt=img.get("alt")))
        except (AttributeError, TypeError, ValueError) as e:
            logger.debug("Skipping malformed <img>: %s", e)
    return out


def _harvest_picture_groups(soup, base_url: str) -> List[ImageCandidate]:
    out = []
    for picture in soup.find_all("picture"):
        try:
            img = picture.find("img")
            if img is None:
                continue
            src = _attr(img, "src") or _attr(img, "data-src")
            if not src or _is_small_data_uri(src):
                continue
            srcsets = [s for s in (_attr(source, "srcset") for source in picture.find_all("source")) if s]
            url = _largest_width_variant(srcsets, base_url) or resolve_url(src, base_url)
            width, height = _dimensions(img)
            out.append(ImageCandidate(url=url, source_kind=SOURCE_PICTURE, width=width, height=height, alt=img.get("alt")))
        except (AttributeError, TypeError, ValueError) as e:
            logger.debug("Skipping malformed <picture>: %s", e)
    return out


def _harvest_css_backgrounds(soup, base_url: str) -> List[ImageCandidate]:
    out = []
    for el in soup.find_all(style=True):
        style = _attr(el, "style")
        if not style or not _BACKGROUND_DECL_RE.search(style):
            continue
        for m in _CSS_URL_RE.finditer(style):
            value = m.group(2).strip()
            if not value or "gradient" in value.lower() or _is_small_data_uri(value):
                continue
            out.append(ImageCandidate(url=resolve_url(value, base_url), source_kind=SOURCE_CSS_BACKGROUND))
    return out


def _harvest_data_bg(soup, base_url: str) -> List[ImageCandidate]:
    out = []
    for el in soup.find_all(lambda tag: any(tag.has_attr(a) for a in _DATA_BG_ATTRS)):
        value = _attr(el, "data-bg") or _attr(el, "data-background")
        if not value:
            continue
        m = _CSS_URL_RE.search(value)
        if m:
            value = m.group(2).strip()
        value = value.strip("'\"")
        if not value or _is_small_data_uri(value):
            continue
        out.append(ImageCandidate(url=resolve_url(value, base_url), source_kind=SOURCE_DATA_BG))
    return out


def harvest_images(html, base_url: str) -> List[ImageCandidate]:
    """All distinct images referenced by `html`, in discovery order."""
    if not isinstance(html, str) or not html:
        return []
    # html5lib keeps semicolon-less names like "&copy=1" in query strings as written
    soup = BeautifulSoup(html, "html5lib")
    passes = (
        _harvest_img_tags,
        _harvest_picture_groups,
        _harvest_css_backgrounds,
        _harvest_data_bg,
    )
    merged: Dict[str, ImageCandidate] = {}
    for harvest_pass in passes:
        for cand in harvest_pass(soup, base_url):
            if cand.url not in merged:
                merged[cand.url] = cand
    logger.debug("Harvested %d images from %s", len(merged), base_url)
    return list(merged.values())


__all__ = ["harvest_images", "parse_srcset", "resolve_url"]
