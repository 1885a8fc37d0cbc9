"""Shared fakes for browser pages, pools and storage."""

import asyncio
import logging
from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from linkprobe.config import Config


def make_response(status: int = 200, redirects: int = 0):
    """Build a Playwright-like response whose request went through redirects."""
    request = None
    for _ in range(redirects):
        request = SimpleNamespace(redirected_from=request)
    return SimpleNamespace(status=status, request=SimpleNamespace(redirected_from=request))


class FakePage:
    """Stand-in for a Playwright page.

    routes maps a URL to a response, an exception, or a list of those
    consumed one per navigation (the last entry repeats).
    """

    def __init__(self, routes=None, html: str = "", url: str = "about:blank", delay: float = 0):
        self.routes = routes if routes is not None else {}
        self.delay = delay
        self.html = html
        self.url = url
        self.goto_calls = []
        self.closed = False
        self.screenshot = AsyncMock(return_value=b"\x89PNG fake image")
        self.wait_for_selector = AsyncMock()

    async def goto(self, url, timeout=None, wait_until=None):
        self.goto_calls.append((url, timeout, wait_until))
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.routes.get(url, make_response(200))
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if isinstance(outcome, BaseException):
            raise outcome
        self.url = url
        return outcome

    async def content(self):
        return self.html

    async def close(self):
        self.closed = True


class FakePool:
    """Pool handing out FakePages, bounded like BrowserPool."""

    def __init__(self, routes=None, html: str = "", max_size: int = 2, start_error=None, delay: float = 0):
        self.routes = routes if routes is not None else {}
        self.delay = delay
        self.html = html
        self.max_size = max_size
        self.start_error = start_error
        self.started = False
        self.stopped = False
        self.pages = []
        self.in_use = 0
        self.max_in_use = 0
        self._semaphore = asyncio.Semaphore(max_size)

    async def start(self):
        if self.start_error:
            raise self.start_error
        self.started = True

    async def stop(self):
        self.stopped = True

    @asynccontextmanager
    async def acquire(self):
        async with self._semaphore:
            page = FakePage(self.routes, html=self.html, delay=self.delay)
            self.pages.append(page)
            self.in_use += 1
            self.max_in_use = max(self.max_in_use, self.in_use)
            try:
                yield page
            finally:
                self.in_use -= 1
                await page.close()


class FakeStorageClient:
    """In-memory StorageClient."""

    def __init__(self, existing=(), exists_error=None, create_error=None, upload_error=None):
        self.buckets = set(existing)
        self.exists_error = exists_error
        self.create_error = create_error
        self.upload_error = upload_error
        self.exists_calls = []
        self.create_calls = []
        self.uploads = []

    async def bucket_exists(self, bucket_name):
        self.exists_calls.append(bucket_name)
        if self.exists_error:
            raise self.exists_error
        return bucket_name in self.buckets

    async def create_bucket(self, bucket_name):
        self.create_calls.append(bucket_name)
        if self.create_error:
            raise self.create_error
        self.buckets.add(bucket_name)
        return bucket_name

    async def upload(self, bucket_name, path, data, content_type):
        if self.upload_error:
            raise self.upload_error
        self.uploads.append((bucket_name, path, data, content_type))


class FakeEnvironment:
    """Environment with fixed answers and no network access."""

    def __init__(self, project_id="test-project-id", region="test-region",
                 uptime_id="uptime123", execution_id="exec456"):
        self.project_id = project_id
        self.region = region
        self.uptime_id = uptime_id
        self.execution_id = execution_id

    async def resolve_project_id(self):
        return self.project_id

    async def get_execution_region(self):
        return self.region

    def get_runtime_metadata(self):
        return {"linkprobe": "test"}


@pytest.fixture
def config():
    return Config(max_concurrent_links=2)


@pytest.fixture
def environment():
    return FakeEnvironment()


@pytest.fixture
def storage_client():
    return FakeStorageClient()


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo setup_logging() calls made by CLI tests."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
