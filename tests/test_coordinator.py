"""Tests for concurrent link verification."""

from contextlib import asynccontextmanager

import pytest

from linkprobe.coordinator import check_links
from linkprobe.models import (
    CandidateLink,
    CaptureCondition,
    CheckerOptions,
    ErrorType,
    ScreenshotOptions,
)
from linkprobe.options import process_options
from linkprobe.verifier import LinkVerifier

from conftest import FakePool, make_response

ORIGIN = "https://example.com"


def _links(count):
    return [CandidateLink(target_url=f"{ORIGIN}/{i}", anchor_text=str(i)) for i in range(count)]


@pytest.fixture
def options():
    return process_options(CheckerOptions(
        origin_url=ORIGIN,
        screenshot_options=ScreenshotOptions(CaptureCondition.NONE),
    ))


@pytest.fixture
def verifier():
    return LinkVerifier(backoff_seconds=0)


class FlakyAcquirePool(FakePool):
    """Pool that cannot open a tab for one URL's task."""

    def __init__(self, fail_on_call, **kwargs):
        super().__init__(**kwargs)
        self.fail_on_call = fail_on_call
        self.calls = 0

    @asynccontextmanager
    async def acquire(self):
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise RuntimeError("browser context crashed")
        async with super().acquire() as page:
            yield page


class TestCheckLinks:
    """Test check_links ordering, bounding and isolation."""

    @pytest.mark.asyncio
    async def test_empty_input(self, options, verifier):
        pool = FakePool()
        assert await check_links(pool, [], options, verifier) == []
        assert pool.pages == []

    @pytest.mark.asyncio
    async def test_results_in_input_order(self, options, verifier):
        links = _links(6)
        routes = {links[1].target_url: make_response(404), links[4].target_url: make_response(500)}
        pool = FakePool(routes, max_size=3, delay=0.01)

        results = await check_links(pool, links, options, verifier)

        assert [r.target_url for r in results] == [link.target_url for link in links]
        assert [r.passed for r in results] == [True, False, True, True, False, True]
        assert all(r.is_origin is False for r in results)

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded_by_pool(self, options, verifier):
        pool = FakePool(max_size=2, delay=0.01)
        await check_links(pool, _links(8), options, verifier)
        assert pool.max_in_use == 2

    @pytest.mark.asyncio
    async def test_every_tab_is_closed(self, options, verifier):
        links = _links(4)
        pool = FakePool({links[2].target_url: make_response(404)}, max_size=2)
        await check_links(pool, links, options, verifier)
        assert len(pool.pages) == 4
        assert all(page.closed for page in pool.pages)
        assert pool.in_use == 0

    @pytest.mark.asyncio
    async def test_tab_failure_only_affects_its_link(self, options, verifier):
        links = _links(3)
        pool = FlakyAcquirePool(fail_on_call=2, max_size=1)

        results = await check_links(pool, links, options, verifier)

        assert [r.passed for r in results] == [True, False, True]
        assert results[1].target_url == links[1].target_url
        assert results[1].error.error_type == ErrorType.NAVIGATION_ERROR
        assert "browser context crashed" in results[1].error.error_message
