"""Playwright-based headless browser for client-rendered catalog pages.

One BrowserManager owns one browser, one context and the pages opened
through it. Extractors create a manager per call and close it with
session(), so concurrent scrapes never share browser state.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional

from catalogforge.core.logging import get_logger

logger = get_logger(__name__)
MAX_PAGE_LOAD_TIMEOUT_MS = 30000
MAX_CONTENT_SIZE_BYTES = 20 * 1024 * 1024  # 20MB


class BrowserType(str, Enum):
    """Supported browser types."""

    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class PageStatus(str, Enum):
    """Page load status."""

    SUCCESS = "success"
    TIMEOUT = "timeout"
    ERROR = "error"
    BLOCKED = "blocked"


@dataclass
class BrowserConfig:
    """Configuration for the headless browser."""

    browser_type: BrowserType = BrowserType.CHROMIUM
    headless: bool = True
    timeout_ms: int = MAX_PAGE_LOAD_TIMEOUT_MS
    settle_delay_ms: int = 2000
    user_agent: str = ""
    viewport_width: int = 1366
    viewport_height: int = 900
    block_images: bool = True
    block_fonts: bool = True


@dataclass
class PageResult:
    """Rendered snapshot of one navigation."""

    url: str
    status: PageStatus
    html: str = ""
    title: str = ""
    error: str = ""
    load_time_ms: float = 0.0
    final_url: str = ""

    @property
    def success(self) -> bool:
        """Check if fetch was successful."""
        return self.status == PageStatus.SUCCESS


class BrowserManager:
    """Manages one headless browser for the duration of a scrape call."""

    def __init__(self, config: Optional[BrowserConfig] = None) -> None:
        """Initialize browser manager.

        Args:
            config: Browser configuration
        """
        self.config = config or BrowserConfig()
        self._playwright: Optional[object] = None
        self._browser: Optional[object] = None
        self._context: Optional[object] = None
        self._lock = asyncio.Lock()
        self.navigations = 0

    @property
    def is_active(self) -> bool:
        return self._browser is not None and self._context is not None

    async def start(self) -> bool:
        """Start the browser.

        Returns:
            True if started successfully
        """
        async with self._lock:
            if self._playwright is not None:
                return True

            try:
                # Lazy import playwright
                from playwright.async_api import async_playwright

                self._playwright = await async_playwright().start()
                launcher = getattr(self._playwright, self.config.browser_type.value)
                self._browser = await launcher.launch(headless=self.config.headless)
                self._context = await self._create_context(self._browser)

                logger.debug(f"Browser started: {self.config.browser_type.value}")
                return True

            except ImportError:
                logger.error("Playwright not installed. Run: pip install playwright")
                return False
            except Exception as e:
                logger.warning(
                    f"Failed to start browser ({self.config.browser_type.value})",
                    error=str(e),
                )
                await self._release()
                return False

    async def stop(self) -> None:
        """Stop the browser and clean up resources."""
        async with self._lock:
            await self._release()
            logger.debug("Browser stopped", navigations=self.navigations)

    async def _release(self) -> None:
        for name, resource in (("context", self._context), ("browser", self._browser)):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.warning(f"Error closing browser {name} during cleanup", error=str(e))

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning("Error stopping playwright during cleanup", error=str(e))

        self._playwright = None
        self._browser = None
        self._context = None

    async def _create_context(self, browser: object) -> object:
        options = {
            "viewport": {
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
        }
        if self.config.user_agent:
            options["user_agent"] = self.config.user_agent
        return await browser.new_context(**options)

    async def fetch_page(self, url: str) -> PageResult:
        """Navigate once, wait for DOM ready plus the settle delay, snapshot.

        Args:
            url: URL to fetch

        Returns:
            PageResult with the rendered HTML
        """
        if not url:
            return PageResult(url=url, status=PageStatus.ERROR, error="Empty URL")

        if not self.is_active:
            started = await self.start()
            if not started:
                return PageResult(
                    url=url,
                    status=PageStatus.ERROR,
                    error="Browser not available",
                )

        self.navigations += 1
        page = await self._context.new_page()
        try:
            if self.config.block_images or self.config.block_fonts:
                await self._setup_resource_blocking(page)

            start_time = time.monotonic()
            response = await page.goto(
                url,
                timeout=self.config.timeout_ms,
                wait_until="domcontentloaded",
            )
            if self.config.settle_delay_ms:
                await asyncio.sleep(self.config.settle_delay_ms / 1000)
            load_time = (time.monotonic() - start_time) * 1000

            if response is None:
                return PageResult(
                    url=url,
                    status=PageStatus.ERROR,
                    error="No response received",
                    load_time_ms=load_time,
                )

            if response.status >= 400:
                return PageResult(
                    url=url,
                    status=PageStatus.BLOCKED,
                    error=f"HTTP {response.status}",
                    load_time_ms=load_time,
                    final_url=page.url,
                )

            html = await page.content()
            return PageResult(
                url=url,
                status=PageStatus.SUCCESS,
                html=html[:MAX_CONTENT_SIZE_BYTES],
                title=await page.title(),
                load_time_ms=load_time,
                final_url=page.url,
            )

        except Exception as e:
            error_msg = str(e)
            if "timeout" in error_msg.lower():
                logger.warning("Page load timeout", url=url, error=error_msg)
                return PageResult(url=url, status=PageStatus.TIMEOUT, error=error_msg)
            logger.warning("Error loading page", url=url, error=error_msg)
            return PageResult(url=url, status=PageStatus.ERROR, error=error_msg)

        finally:
            await page.close()

    async def _setup_resource_blocking(self, page: object) -> None:
        blocked_types = []
        if self.config.block_images:
            blocked_types.extend(["image", "media"])
        if self.config.block_fonts:
            blocked_types.append("font")

        if blocked_types:
            await page.route(
                "**/*",
                lambda route: route.abort()
                if route.request.resource_type in blocked_types
                else route.continue_(),
            )

    @asynccontextmanager
    async def session(self) -> AsyncIterator["BrowserManager"]:
        """Context manager for browser session.

        Yields:
            Self for use in async with block
        """
        try:
            await self.start()
            yield self
        finally:
            await self.stop()
