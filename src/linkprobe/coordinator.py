"""Concurrent verification of scraped links."""

import asyncio
import logging
from typing import Sequence

from linkprobe.infrastructure import BrowserPool
from linkprobe.models import (
    CandidateLink,
    CheckerOptions,
    ErrorType,
    LinkResult,
    StructuredError,
    now_iso,
)
from linkprobe.options import resolve_link_policy
from linkprobe.verifier import LinkVerifier

logger = logging.getLogger(__name__)


def _failed_link_result(
    link: CandidateLink, options: CheckerOptions, message: str
) -> LinkResult:
    """Result for a link whose check could not run at all."""
    timestamp = now_iso()
    return LinkResult(
        target_url=link.target_url,
        anchor_text=link.anchor_text,
        html_element=link.html_element,
        passed=False,
        expected_status_code=resolve_link_policy(link, options).expected_status,
        source_url=options.origin_url,
        link_start_time=timestamp,
        link_end_time=timestamp,
        error=StructuredError(ErrorType.NAVIGATION_ERROR, message),
    )


async def _check_one(
    pool: BrowserPool,
    verifier: LinkVerifier,
    link: CandidateLink,
    options: CheckerOptions,
) -> LinkResult:
    """Check one link on its own tab; failures stay with this link."""
    try:
        async with pool.acquire() as page:
            return await verifier.check_link(page, link, options, is_origin=False)
    except Exception as e:
        logger.exception(f"Could not check {link.target_url}")
        return _failed_link_result(
            link, options, f"Failed to open a browser tab for {link.target_url}: {e}"
        )


async def check_links(
    pool: BrowserPool,
    links: Sequence[CandidateLink],
    options: CheckerOptions,
    verifier: LinkVerifier,
) -> list[LinkResult]:
    """Verify every link, at most pool.max_size at a time.

    Args:
        pool: Started browser pool; its size bounds concurrency
        links: Links to verify, in the order results are wanted
        options: Processed checker options
        verifier: Verifier shared by all tasks

    Returns:
        One LinkResult per link, in the same order as links
    """
    if not links:
        return []

    logger.info(f"Checking {len(links)} links (max concurrent: {pool.max_size})")

    tasks = [_check_one(pool, verifier, link, options) for link in links]
    return list(await asyncio.gather(*tasks))
