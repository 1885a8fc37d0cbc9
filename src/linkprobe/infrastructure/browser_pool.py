"""
Browser pool.

One Chromium process, a fixed set of Playwright browser contexts. Every
acquisition hands out a brand new tab in an idle context, so the number of
contexts is the number of links that can be checked at the same time.
Contexts are closed and replaced after MAX_TABS_PER_CONTEXT tabs.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from linkprobe.constants import (
    DEFAULT_LINK_TIMEOUT_MILLIS,
    DEFAULT_MAX_CONCURRENT_LINKS,
    MAX_TABS_PER_CONTEXT,
)

logger = logging.getLogger(__name__)


@dataclass
class ContextMetrics:
    """Usage counters for one browser context."""
    context_id: int
    created_at: datetime = field(default_factory=datetime.now)
    tabs_opened: int = 0
    last_used: Optional[datetime] = None

    def record_tab(self) -> None:
        self.tabs_opened += 1
        self.last_used = datetime.now()

    @property
    def worn_out(self) -> bool:
        """Whether the context should be replaced before its next use."""
        return self.tabs_opened >= MAX_TABS_PER_CONTEXT


async def _close_quietly(resource: Any, description: str) -> None:
    """Close a Playwright object; shutdown errors are logged, not raised."""
    try:
        await resource.close()
    except Exception as e:
        logger.warning(f"Error closing {description}: {e}")


class BrowserPool:
    """
    Bounded pool of browser contexts handing out one fresh tab per acquisition.

    Usage:
        pool = BrowserPool(max_size=5)
        await pool.start()
        try:
            async with pool.acquire() as page:
                await page.goto(url)
        finally:
            await pool.stop()
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_CONCURRENT_LINKS,
        headless: bool = True,
        timeout_ms: int = DEFAULT_LINK_TIMEOUT_MILLIS,
        user_agent: Optional[str] = None,
    ):
        """
        Initialize browser pool.

        Args:
            max_size: Number of browser contexts, i.e. tabs open at once
            headless: Run Chromium without a window
            timeout_ms: Default timeout for page operations
            user_agent: User agent for every context (Playwright's when None)
        """
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")

        self.max_size = max_size
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.user_agent = user_agent

        self._playwright = None
        self._browser = None
        self._contexts: dict[int, Any] = {}
        self._metrics: dict[int, ContextMetrics] = {}
        self._idle: asyncio.Queue[int] = asyncio.Queue()
        self._next_id = 0
        self._started_at: Optional[datetime] = None

    @property
    def is_started(self) -> bool:
        return self._started_at is not None

    @property
    def idle_count(self) -> int:
        return self._idle.qsize()

    async def start(self) -> None:
        """
        Launch Chromium and open every context.

        A failure part way through closes whatever was opened before the
        error is raised.
        """
        if self.is_started:
            return

        try:
            from playwright.async_api import async_playwright
        except ImportError:
            raise ImportError(
                "playwright package not installed. "
                "Install with: pip install playwright && playwright install chromium"
            )

        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
            for _ in range(self.max_size):
                await self._open_context()
        except Exception:
            await self.stop()
            raise

        self._started_at = datetime.now()
        logger.info(f"Browser pool started with {self.max_size} contexts")

    async def stop(self) -> None:
        """Close all contexts, the browser and Playwright. Safe to repeat."""
        for context_id, context in list(self._contexts.items()):
            await _close_quietly(context, f"context {context_id}")
        self._contexts.clear()
        self._metrics.clear()
        self._idle = asyncio.Queue()

        if self._browser is not None:
            await _close_quietly(self._browser, "browser")
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping playwright: {e}")
            self._playwright = None

        if self.is_started:
            logger.info("Browser pool stopped")
        self._started_at = None

    async def _open_context(self) -> int:
        """Open a context, register it and mark it idle."""
        options: dict[str, Any] = {}
        if self.user_agent:
            options["user_agent"] = self.user_agent

        context = await self._browser.new_context(**options)
        context.set_default_timeout(self.timeout_ms)

        context_id = self._next_id
        self._next_id += 1
        self._contexts[context_id] = context
        self._metrics[context_id] = ContextMetrics(context_id=context_id)
        self._idle.put_nowait(context_id)

        logger.debug(f"Opened browser context {context_id}")
        return context_id

    async def _replace_context(self, context_id: int) -> None:
        """Swap a context for a new one; keep the old one if opening fails."""
        try:
            new_id = await self._open_context()
        except Exception as e:
            logger.warning(f"Could not replace context {context_id}, reusing it: {e}")
            self._idle.put_nowait(context_id)
            return

        context = self._contexts.pop(context_id, None)
        metrics = self._metrics.pop(context_id, None)
        if context is not None:
            await _close_quietly(context, f"context {context_id}")
        if metrics is not None:
            logger.info(
                f"Replaced context {context_id} -> {new_id} after {metrics.tabs_opened} tabs"
            )

    async def _release(self, context_id: int) -> None:
        """Return a context to the idle queue, replacing it if worn out."""
        metrics = self._metrics.get(context_id)
        if not self.is_started or metrics is None:
            return
        if metrics.worn_out:
            await self._replace_context(context_id)
        else:
            self._idle.put_nowait(context_id)

    @asynccontextmanager
    async def acquire(self):
        """
        Open a new tab in an idle context.

        Waits while every context is busy. The tab is closed and the context
        released on every exit path, including errors and cancellation.

        Yields:
            Playwright Page
        """
        if not self.is_started:
            raise RuntimeError("Browser pool not started. Call start() first.")

        context_id = await self._idle.get()
        context = self._contexts[context_id]
        metrics = self._metrics[context_id]

        try:
            try:
                await context.clear_cookies()
            except Exception as e:
                logger.warning(f"Could not clear cookies of context {context_id}: {e}")

            page = await context.new_page()
            try:
                yield page
            finally:
                metrics.record_tab()
                await _close_quietly(page, f"tab of context {context_id}")
        finally:
            await self._release(context_id)
