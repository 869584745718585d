# isin_matcher/browser_session.py
from __future__ import annotations

import logging
import os
from typing import Any, Optional

from playwright.async_api import (
    async_playwright, Browser, BrowserContext, Page, Playwright,
    Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError, Route
)

log = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1280, "height": 720}
BLOCKED_RESOURCE_TYPES = {"image", "media", "font"}


class NavigationError(Exception):
    """Page load failed (timeout / network). Carries the url and the cause."""

    def __init__(self, url: str, cause: BaseException):
        self.url = url
        self.cause = cause
        kind = "timeout" if isinstance(cause, PlaywrightTimeoutError) else type(cause).__name__
        super().__init__(f"navigation failed ({kind}) {url}: {cause}")


class BrowserSession:
    """
    Playwright の Chromium を1つ起動し、コンテキスト/ページを1組だけ持つ。
    パイプラインが使うのは navigate / extract_text / evaluate_in_page /
    new_isolated_session / close_session の5操作のみ。
    """

    def __init__(self, headless: bool = True):
        self.headless = headless
        self._pw: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self.page_timeout_ms = int(os.getenv("PAGE_TIMEOUT_MS", "30000"))
        self.text_timeout_ms = int(os.getenv("TEXT_TIMEOUT_MS", "5000"))
        self.wait_until = os.getenv("WAIT_UNTIL", "networkidle")
        self.block_resources = os.getenv("BLOCK_RESOURCES", "true").lower() == "true"

    # ===== ライフサイクル =====
    async def start(self):
        if self.browser:
            return
        log.info("[browser] launching chromium (%s)", "headless" if self.headless else "visible")
        self._pw = await async_playwright().start()
        self.browser = await self._pw.chromium.launch(
            headless=self.headless,
            args=[
                "--no-sandbox",
                "--disable-dev-shm-usage",  # /dev/shm不足でのクラッシュ回避
            ],
        )

    async def close(self):
        try:
            await self.close_session()
        finally:
            try:
                if self.browser:
                    await self.browser.close()
            finally:
                if self._pw:
                    await self._pw.stop()
        self._pw = None
        self.browser = None
        log.info("[browser] session closed")

    # ===== セッション分離 =====
    async def new_isolated_session(self):
        """Drop the current context (cookies, storage) and open a fresh one."""
        await self.close_session()
        if not self.browser:
            await self.start()
        self.context = await self.browser.new_context(
            locale="en-US",
            viewport=VIEWPORT,
            user_agent=USER_AGENT,
        )
        if self.block_resources:
            await self.context.route("**/*", self._handle_route)
        self.page = await self.context.new_page()
        self.page.set_default_timeout(self.page_timeout_ms)

    async def close_session(self):
        try:
            if self.page:
                await self.page.close()
        finally:
            try:
                if self.context:
                    await self.context.close()
            finally:
                self.page = None
                self.context = None

    async def _handle_route(self, route: Route):
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    async def _ensure_page(self) -> Page:
        if not self.page:
            await self.new_isolated_session()
        return self.page

    # ===== ページ操作 =====
    async def navigate(self, url: str, wait_until: Optional[str] = None, timeout_ms: Optional[int] = None) -> None:
        page = await self._ensure_page()
        try:
            await page.goto(
                url,
                wait_until=wait_until or self.wait_until,
                timeout=timeout_ms or self.page_timeout_ms,
            )
        except PlaywrightError as e:
            raise NavigationError(url, e) from e

    async def extract_text(self, selector: Optional[str] = None) -> str:
        page = await self._ensure_page()
        return await page.inner_text(selector or "body", timeout=self.text_timeout_ms)

    async def evaluate_in_page(self, script: str, arg: Any = None) -> Any:
        page = await self._ensure_page()
        if arg is None:
            return await page.evaluate(script)
        return await page.evaluate(script, arg)
