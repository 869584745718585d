# isin_matcher/isin_extractor.py
from __future__ import annotations

import logging
import re
from typing import Callable, Optional

from bs4 import BeautifulSoup

log = logging.getLogger(__name__)

ISIN_PATTERN = r"[A-Z]{2}[A-Z0-9]{10}"
ISIN_FULL_RE = re.compile(ISIN_PATTERN)
# ラベルだけ大文字小文字を無視する（コード自体は大文字のみ）
ISIN_LABEL_RE = re.compile(rf"(?i:ISIN)\s*:\s*({ISIN_PATTERN})(?![A-Za-z0-9])")
ISIN_BARE_RE = re.compile(rf"(?<![A-Za-z0-9])({ISIN_PATTERN})(?![A-Za-z0-9])")

# 要素スキャンの優先順（表セル → 汎用コンテナ → インライン → 段落）
ELEMENT_SCAN_ORDER = ("td", "div", "span", "p")
_NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]

ExtractionStrategy = Callable[[str, Optional[str]], Optional[str]]


def is_valid_isin(value: Optional[str]) -> bool:
    return bool(value) and bool(ISIN_FULL_RE.fullmatch(value))


def _from_label(text: str, html: Optional[str] = None) -> Optional[str]:
    m = ISIN_LABEL_RE.search(text or "")
    return m.group(1) if m else None


def _from_bare_text(text: str, html: Optional[str] = None) -> Optional[str]:
    m = ISIN_BARE_RE.search(text or "")
    return m.group(1) if m else None


def _from_elements(text: str, html: Optional[str] = None) -> Optional[str]:
    """
    本文テキストに出てこない要素（非表示タブ等）も含めて、
    td/div/span/p の順に要素テキストを走査する。
    """
    if not html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    for node in soup.find_all(_NON_CONTENT_TAGS):
        node.decompose()
    for tag in ELEMENT_SCAN_ORDER:
        for el in soup.find_all(tag):
            m = ISIN_BARE_RE.search(el.get_text(" ", strip=True))
            if m:
                return m.group(1)
    return None


EXTRACTION_STRATEGIES: tuple[tuple[str, ExtractionStrategy], ...] = (
    ("label", _from_label),
    ("bare", _from_bare_text),
    ("element", _from_elements),
)


def extract_isin_with_tier(text: str, html: Optional[str] = None) -> tuple[Optional[str], Optional[str]]:
    """
    Run the strategies in priority order and stop at the first hit.

    Returns ``(isin, tier_name)``; both are None when no tier matched.
    """
    for name, strategy in EXTRACTION_STRATEGIES:
        found = strategy(text or "", html)
        if found:
            return found, name
    return None, None


def extract_isin(text: str, html: Optional[str] = None) -> Optional[str]:
    isin, tier = extract_isin_with_tier(text, html)
    if isin:
        log.debug("[isin] %s found via %s", isin, tier)
    return isin
