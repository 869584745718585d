# isin_matcher/candidate_locator.py
from __future__ import annotations

import logging
import os
from typing import Callable, List, Optional
from urllib.parse import quote, urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from .models import Candidate
from .text_normalizer import norm_heading, norm_space

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.gurufocus.com"
STOCK_LINK_SELECTOR = 'a[href*="/stock/"]'
STOCKS_SECTION_SELECTORS = ("#stocks", '[data-testid="stocks"]')
STOCKS_HEADING_TAGS = ["h2", "h3", "div"]
STOCKS_HEADING_TEXT = "stocks"

# None = この段では判断できない（次の段へ）、list = 確定（空でも打ち切り）
SelectionStrategy = Callable[[BeautifulSoup], Optional[List[Tag]]]


def gurufocus_base_url() -> str:
    # .env は main 側で import 後に読まれるので、呼び出し時に毎回参照する
    return (os.getenv("GURUFOCUS_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")


def build_search_url(company_name: str, base_url: Optional[str] = None) -> str:
    base = (base_url or gurufocus_base_url()).rstrip("/")
    return f"{base}/search?s={quote(company_name or '', safe='')}"


def _closest(el: Tag, name: str) -> Optional[Tag]:
    if el.name == name:
        return el
    return el.find_parent(name)


def _find_stocks_section(soup: BeautifulSoup) -> Optional[Tag]:
    for selector in STOCKS_SECTION_SELECTORS:
        found = soup.select_one(selector)
        if found is not None:
            return found
    for el in soup.find_all(STOCKS_HEADING_TAGS):
        if norm_heading(el.get_text(" ")) == STOCKS_HEADING_TEXT:
            return el
    return None


def _table_near(section: Tag) -> Optional[Tag]:
    if section.name == "table":
        return section
    container = _closest(section, "div")
    if container is not None:
        table = container.find("table")
        if table is not None:
            return table
    if section.parent is not None:
        table = section.parent.find("table")
        if table is not None:
            return table
    sibling = section.find_next_sibling()
    if sibling is not None:
        if sibling.name == "table":
            return sibling
        return sibling.find("table")
    return None


def _links_in_stocks_section(soup: BeautifulSoup) -> Optional[List[Tag]]:
    section = _find_stocks_section(soup)
    if section is None:
        return None
    table = _table_near(section)
    if table is None:
        return None
    return table.select(STOCK_LINK_SELECTOR)


def _links_in_stock_table(soup: BeautifulSoup) -> Optional[List[Tag]]:
    for table in soup.select('table, [role="table"]'):
        links = table.select(STOCK_LINK_SELECTOR)
        if links:
            return links
    return None


def _links_in_table_rows(soup: BeautifulSoup) -> Optional[List[Tag]]:
    return soup.select(f"tr {STOCK_LINK_SELECTOR}, td {STOCK_LINK_SELECTOR}")


SELECTION_STRATEGIES: tuple[tuple[str, SelectionStrategy], ...] = (
    ("stocks_section", _links_in_stocks_section),
    ("stock_table", _links_in_stock_table),
    ("table_rows", _links_in_table_rows),
)


def _to_candidates(links: List[Tag], base_url: str) -> List[Candidate]:
    out: List[Candidate] = []
    seen: set[str] = set()
    for a in links:
        href = (a.get("href") or "").strip()
        if not href:
            continue
        url = urljoin(base_url, href)
        if url in seen:
            continue
        seen.add(url)
        out.append(Candidate(url=url, display_text=norm_space(a.get_text(" "))))
    return out


def locate_candidates(html: str, base_url: Optional[str] = None) -> List[Candidate]:
    """
    検索結果ページの HTML から個別銘柄ページ候補を文書順に返す。
    Stocks セクション → /stock/ リンクを含む表 → 行/セル内リンク の順に試す。
    """
    if not html:
        return []
    base = base_url or gurufocus_base_url() + "/"
    soup = BeautifulSoup(html, "html.parser")
    for name, strategy in SELECTION_STRATEGIES:
        links = strategy(soup)
        if links is None:
            continue
        candidates = _to_candidates(links, base)
        log.debug("[search] %s candidates via %s", len(candidates), name)
        return candidates
    return []
