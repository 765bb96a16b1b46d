"""Browser automation surface backed by Playwright (optional).

To enable it:
  1) pip install "opsengine[browser]"
  2) playwright install chromium

Every action returns an :class:`OperationResult` so browser steps look the
same to callers as native operations.
"""
from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable

from opsengine.models import OperationResult

logger = logging.getLogger(__name__)


class AgentBrowserError(RuntimeError):
    pass


class AgentBrowser:
    def __init__(self, *, headless: bool = False, screenshot_dir: Path | str = "temp") -> None:
        self._headless = headless
        self._screenshot_dir = Path(screenshot_dir)
        self._playwright: Any = None
        self._browser: Any = None
        self._page: Any = None

    async def _ensure(self) -> Any:
        if self._page is not None:
            return self._page
        try:
            from playwright.async_api import async_playwright  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise AgentBrowserError(
                "Playwright is not installed. Run: pip install playwright && playwright install chromium"
            ) from exc
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self._headless)
        self._page = await self._browser.new_page()
        return self._page

    async def _guard(self, label: str, action: Callable[[Any], Awaitable[OperationResult]]) -> OperationResult:
        try:
            page = await self._ensure()
            return await action(page)
        except Exception as exc:
            logger.warning("Browser %s failed: %s", label, exc)
            return OperationResult.fail(f"Browser {label} failed: {exc}")

    async def open_page(self, url: str) -> OperationResult:
        """Open ``url`` in a fresh tab; the first call reuses the tab the launch created."""
        reuse_first_tab = self._page is None

        async def _open(page: Any) -> OperationResult:
            if not reuse_first_tab:
                page = await self._browser.new_page()
                self._page = page
            await page.goto(url, wait_until="networkidle", timeout=30000)
            return OperationResult.ok(f"Opened {url}", data={"url": page.url})

        return await self._guard("open", _open)

    async def navigate(self, url: str) -> OperationResult:
        if not url:
            return OperationResult.fail("url is required for navigate")

        async def _navigate(page: Any) -> OperationResult:
            await page.goto(url, wait_until="domcontentloaded", timeout=30000)
            return OperationResult.ok(f"Navigated to {url}", data={"url": page.url})

        return await self._guard("navigate", _navigate)

    async def click(self, selector: str) -> OperationResult:
        if not selector:
            return OperationResult.fail("selector is required for click")

        async def _click(page: Any) -> OperationResult:
            await page.click(selector, timeout=15000)
            return OperationResult.ok(f"Clicked element: {selector}")

        return await self._guard("click", _click)

    async def type(self, selector: str, text: str) -> OperationResult:
        if not selector:
            return OperationResult.fail("selector is required for type")

        async def _type(page: Any) -> OperationResult:
            await page.fill(selector, text or "", timeout=15000)
            return OperationResult.ok(f"Typed text into: {selector}")

        return await self._guard("type", _type)

    async def screenshot(self, path: Path | str | None = None) -> OperationResult:
        target = Path(path) if path else self._screenshot_dir / "screenshot.png"

        async def _screenshot(page: Any) -> OperationResult:
            target.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(target), full_page=True)
            return OperationResult.ok(f"Screenshot saved to {target}", data={"path": str(target)})

        return await self._guard("screenshot", _screenshot)

    async def close(self) -> None:
        for handle, method in ((self._page, "close"), (self._browser, "close"), (self._playwright, "stop")):
            if handle is None:
                continue
            with contextlib.suppress(Exception):
                await getattr(handle, method)()
        self._page = self._browser = self._playwright = None


__all__ = ["AgentBrowser", "AgentBrowserError"]
