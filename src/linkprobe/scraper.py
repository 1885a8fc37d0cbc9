"""Extraction and ordering of candidate links from a rendered page."""

import logging
import random
from typing import Iterable, Optional, Sequence
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from linkprobe.models import CandidateLink, CheckerOptions, LinkOrder, PerLinkOption

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")


def _document_base_url(soup: BeautifulSoup, page_url: str) -> str:
    """Resolve the base URL of a document, honouring <base href>."""
    base = soup.find("base", href=True)
    if base and base["href"].strip():
        return urljoin(page_url, base["href"].strip())
    return page_url


def _resolve_target(base_url: str, value: str) -> Optional[str]:
    """Turn an attribute value into an absolute http(s) URL, or None."""
    value = value.strip()
    if not value or value.startswith("#"):
        return None
    absolute_url = urljoin(base_url, value)
    if urlparse(absolute_url).scheme not in ALLOWED_SCHEMES:
        return None
    return absolute_url


def extract_links_from_html(
    html: str,
    page_url: str,
    selector: str = "a",
    attributes: Sequence[str] = ("href",),
    per_link_options: Optional[dict[str, PerLinkOption]] = None,
) -> list[CandidateLink]:
    """Extract candidate links from an HTML document.

    Args:
        html: Rendered HTML of the page
        page_url: URL the page was loaded from
        selector: CSS selector matching link elements
        attributes: Attribute names read as link targets, in order
        per_link_options: Overrides attached by exact target URL

    Returns:
        One CandidateLink per element attribute holding an http(s) target,
        in document order. Duplicates are kept.
    """
    per_link_options = per_link_options or {}
    soup = BeautifulSoup(html, "html.parser")
    base_url = _document_base_url(soup, page_url)

    links: list[CandidateLink] = []
    for element in soup.select(selector):
        anchor_text = " ".join(element.get_text(" ", strip=True).split())
        for attribute in attributes:
            value = element.get(attribute)
            if isinstance(value, list):
                value = " ".join(value)
            if not value:
                continue
            target_url = _resolve_target(base_url, value)
            if target_url is None:
                continue
            links.append(CandidateLink(
                target_url=target_url,
                anchor_text=anchor_text,
                html_element=element.name.lower(),
                per_link_option=per_link_options.get(target_url),
            ))

    return links


async def retrieve_links_from_page(
    page,
    selector: str = "a",
    attributes: Sequence[str] = ("href",),
    per_link_options: Optional[dict[str, PerLinkOption]] = None,
) -> list[CandidateLink]:
    """Extract candidate links from the current DOM of a browser page."""
    html = await page.content()
    links = extract_links_from_html(
        html, page.url, selector, attributes, per_link_options
    )
    logger.debug(f"Found {len(links)} candidate links on {page.url}")
    return links


def shuffle_and_truncate(
    links: Iterable[CandidateLink],
    link_limit: int,
    link_order: LinkOrder = LinkOrder.FIRST_N,
    rng: Optional[random.Random] = None,
) -> list[CandidateLink]:
    """Order links by link_order and keep at most link_limit of them.

    RANDOM shuffles a copy of the full list before truncating, so every
    link has the same chance of being picked.
    """
    links = list(links)
    if link_limit <= 0 or not links:
        return []

    if link_order == LinkOrder.RANDOM:
        (rng or random).shuffle(links)

    return links[:link_limit]


async def scrape_links(
    page,
    options: CheckerOptions,
    rng: Optional[random.Random] = None,
) -> list[CandidateLink]:
    """Collect the links to follow from the rendered origin page.

    Waits for options.wait_for_selector first when one is configured.
    """
    if options.wait_for_selector:
        await page.wait_for_selector(
            options.wait_for_selector, timeout=options.link_timeout_millis
        )

    retrieved = await retrieve_links_from_page(
        page,
        options.query_selector_all,
        options.get_attributes,
        options.per_link_options,
    )
    selected = shuffle_and_truncate(
        retrieved, options.link_limit, options.link_order, rng
    )
    logger.info(
        f"Selected {len(selected)} of {len(retrieved)} links "
        f"({options.link_order.value}, limit={options.link_limit})"
    )
    return selected
