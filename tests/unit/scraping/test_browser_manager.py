"""Tests for Playwright browser integration.

Tests browser management and page fetching with a mocked browser
context; no real browser is launched."""

from __future__ import annotations

import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from catalogforge.scraping.browser import (
    MAX_PAGE_LOAD_TIMEOUT_MS,
    BrowserConfig,
    BrowserManager,
    BrowserType,
    PageResult,
    PageStatus,
)

URL = "https://www.worldofbooks.com/en-gb/category/fiction"


def mocked_manager(goto_result=None, goto_error=None) -> tuple:
    """Manager whose context hands out a mocked page."""
    page = MagicMock()
    page.url = URL
    page.route = AsyncMock()
    page.close = AsyncMock()
    page.content = AsyncMock(return_value="<html><h1>Fiction</h1></html>")
    page.title = AsyncMock(return_value="Fiction")
    if goto_error is not None:
        page.goto = AsyncMock(side_effect=goto_error)
    else:
        page.goto = AsyncMock(return_value=goto_result)

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)

    manager = BrowserManager(BrowserConfig(settle_delay_ms=0))
    manager._browser = MagicMock()
    manager._context = context
    return manager, page


# BrowserType / PageStatus tests


class TestEnums:
    """Tests for browser enums."""

    def test_browser_types_defined(self) -> None:
        """Test all browser types are defined."""
        assert {t.value for t in BrowserType} == {"chromium", "firefox", "webkit"}

    def test_statuses_defined(self) -> None:
        """Test all statuses are defined."""
        assert {s.value for s in PageStatus} == {"success", "timeout", "error", "blocked"}


# BrowserConfig / PageResult tests


class TestDataclasses:
    """Tests for configuration and result dataclasses."""

    def test_default_config(self) -> None:
        """Test default configuration."""
        config = BrowserConfig()

        assert config.browser_type == BrowserType.CHROMIUM
        assert config.headless is True
        assert config.timeout_ms == MAX_PAGE_LOAD_TIMEOUT_MS
        assert config.settle_delay_ms == 2000

    def test_page_result_success(self) -> None:
        """Test success is derived from status."""
        assert PageResult(url=URL, status=PageStatus.SUCCESS).success
        assert not PageResult(url=URL, status=PageStatus.BLOCKED).success


# BrowserManager tests


class TestBrowserManager:
    """Tests for BrowserManager lifecycle and navigation."""

    def test_initially_inactive(self) -> None:
        """Test a new manager holds no browser."""
        manager = BrowserManager()

        assert manager.is_active is False
        assert manager.navigations == 0

    @pytest.mark.asyncio
    async def test_start_without_playwright(self) -> None:
        """Test start() reports False when playwright cannot be imported."""
        manager = BrowserManager()

        with patch.dict(sys.modules, {"playwright.async_api": None}):
            started = await manager.start()

        assert started is False
        assert manager.is_active is False

    @pytest.mark.asyncio
    async def test_empty_url(self) -> None:
        """Test an empty URL is rejected without navigating."""
        result = await BrowserManager().fetch_page("")

        assert result.status == PageStatus.ERROR

    @pytest.mark.asyncio
    async def test_fetch_success(self) -> None:
        """Test a navigation snapshots the rendered DOM."""
        manager, page = mocked_manager(goto_result=MagicMock(status=200))

        result = await manager.fetch_page(URL)

        assert result.success
        assert result.html == "<html><h1>Fiction</h1></html>"
        assert result.title == "Fiction"
        assert result.final_url == URL
        assert manager.navigations == 1
        page.goto.assert_awaited_once_with(
            URL, timeout=MAX_PAGE_LOAD_TIMEOUT_MS, wait_until="domcontentloaded"
        )
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fetch_error_status_blocked(self) -> None:
        """Test HTTP error statuses are reported as blocked."""
        manager, page = mocked_manager(goto_result=MagicMock(status=503))

        result = await manager.fetch_page(URL)

        assert result.status == PageStatus.BLOCKED
        assert result.error == "HTTP 503"
        page.content.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fetch_timeout(self) -> None:
        """Test navigation timeouts are classified."""
        manager, page = mocked_manager(goto_error=Exception("Timeout 30000ms exceeded"))

        result = await manager.fetch_page(URL)

        assert result.status == PageStatus.TIMEOUT
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fetch_no_response(self) -> None:
        """Test a navigation without a response is an error."""
        manager, _ = mocked_manager(goto_result=None)

        result = await manager.fetch_page(URL)

        assert result.status == PageStatus.ERROR

    @pytest.mark.asyncio
    async def test_stop_releases_resources(self) -> None:
        """Test stop() closes context and browser."""
        manager, _ = mocked_manager()
        context, browser = manager._context, manager._browser
        context.close = AsyncMock()
        browser.close = AsyncMock()

        await manager.stop()

        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
        assert manager.is_active is False
