# isin_matcher/gurufocus_scraper.py
from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from playwright.async_api import Error as PlaywrightError

from .browser_session import BrowserSession, NavigationError
from .candidate_locator import build_search_url, gurufocus_base_url, locate_candidates
from .isin_extractor import extract_isin_with_tier
from .models import Candidate

log = logging.getLogger(__name__)

OUTER_HTML_JS = "() => document.documentElement ? document.documentElement.outerHTML : ''"


class GuruFocusScraper:
    """
    GuruFocus の検索ページ → 個別銘柄ページを BrowserSession 経由で辿る。
    ナビゲーション失敗や銘柄ページの本文取得失敗は「候補なし / ISIN なし」として扱い、
    原因はログに残す。リトライはしない。
    """

    def __init__(self, session: Optional[BrowserSession] = None, headless: bool = True):
        self.session = session or BrowserSession(headless=headless)
        self.base_url = gurufocus_base_url()
        # 検索結果は描画が遅いので長めに待つ
        self.search_settle_ms = int(os.getenv("SEARCH_SETTLE_MS", "2000"))
        self.page_settle_ms = int(os.getenv("PAGE_SETTLE_MS", "1000"))

    async def start(self):
        await self.session.start()

    async def close(self):
        await self.session.close()

    @asynccontextmanager
    async def isolated_session(self) -> AsyncIterator["GuruFocusScraper"]:
        await self.session.new_isolated_session()
        try:
            yield self
        finally:
            await self.session.close_session()

    async def _settle(self, ms: int):
        if ms > 0:
            await asyncio.sleep(ms / 1000)

    async def _page_html(self) -> str:
        return await self.session.evaluate_in_page(OUTER_HTML_JS) or ""

    # ===== 検索 =====
    async def search_company(self, company_name: str) -> List[Candidate]:
        url = build_search_url(company_name, self.base_url)
        log.info("[search] %s -> %s", company_name, url)
        try:
            await self.session.navigate(url)
        except NavigationError as e:
            log.warning("[search] %s", e)
            return []
        await self._settle(self.search_settle_ms)
        html = await self._page_html()
        candidates = locate_candidates(html, url)
        log.info("[search] found %s stock links for %s", len(candidates), company_name)
        return candidates

    # ===== ISIN 抽出 =====
    async def extract_isin(self, candidate: Candidate) -> Optional[str]:
        log.info("[page] checking ISIN on %s", candidate.url)
        try:
            await self.session.navigate(candidate.url)
        except NavigationError as e:
            log.warning("[page] %s", e)
            return None
        await self._settle(self.page_settle_ms)
        # 本文が読めないページは ISIN なし扱いにして次の候補へ進む
        try:
            text = await self.session.extract_text()
            html = await self._page_html()
        except PlaywrightError as e:
            log.warning("[page] failed to read %s (%s): %s", candidate.url, type(e).__name__, e)
            return None
        isin, tier = extract_isin_with_tier(text, html)
        log.info("[page] ISIN %s (tier=%s) %s", isin or "not found", tier or "-", candidate.url)
        return isin
