"""Validation, defaulting and per-link resolution of checker options."""

from dataclasses import replace
from typing import Optional, Union

from linkprobe.constants import (
    DEFAULT_EXPECTED_STATUS,
    DEFAULT_GET_ATTRIBUTES,
    DEFAULT_LINK_LIMIT,
    DEFAULT_LINK_TIMEOUT_MILLIS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_QUERY_SELECTOR,
    MAX_HTTP_STATUS_CODE,
    MIN_HTTP_STATUS_CODE,
)
from linkprobe.models import (
    CandidateLink,
    CheckerOptions,
    ExpectedStatus,
    LinkOrder,
    LinkPolicy,
    PerLinkOption,
    StatusClass,
)


def _is_http_url(url: str) -> bool:
    return isinstance(url, str) and url.startswith(("http://", "https://"))


def _check_non_negative(name: str, value: Optional[int]) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


def _check_positive(name: str, value: Optional[int]) -> None:
    _check_non_negative(name, value)
    if value == 0:
        raise ValueError(f"{name} must be positive, got 0")


def _check_expected_status(url: str, expected: Optional[ExpectedStatus]) -> None:
    if expected is None or isinstance(expected, StatusClass):
        return
    if not MIN_HTTP_STATUS_CODE <= expected <= MAX_HTTP_STATUS_CODE:
        raise ValueError(
            f"Invalid expected_status_code for {url}: {expected} is not between "
            f"{MIN_HTTP_STATUS_CODE} and {MAX_HTTP_STATUS_CODE}"
        )


def validate_input_options(options: CheckerOptions) -> CheckerOptions:
    """Validate user supplied options.

    Args:
        options: Options as supplied by the caller

    Returns:
        The same options, unchanged

    Raises:
        ValueError: If any option is malformed
    """
    if not options.origin_url:
        raise ValueError("origin_url is required")
    if not _is_http_url(options.origin_url):
        raise ValueError(
            f"origin_url must start with http:// or https://, got {options.origin_url!r}"
        )

    _check_non_negative("link_limit", options.link_limit)
    _check_positive("link_timeout_millis", options.link_timeout_millis)
    _check_non_negative("max_retries", options.max_retries)
    _check_non_negative("max_redirects", options.max_redirects)

    for url, per_link in options.per_link_options.items():
        if not _is_http_url(url):
            raise ValueError(f"per_link_options key must be an http(s) URL, got {url!r}")
        _check_positive(f"link_timeout_millis for {url}", per_link.link_timeout_millis)
        _check_expected_status(url, per_link.expected_status_code)

    return options


def set_default_options(options: CheckerOptions) -> CheckerOptions:
    """Return a copy of options with unset values replaced by defaults."""
    return replace(
        options,
        link_limit=DEFAULT_LINK_LIMIT if options.link_limit is None else options.link_limit,
        query_selector_all=options.query_selector_all or DEFAULT_QUERY_SELECTOR,
        get_attributes=list(options.get_attributes or DEFAULT_GET_ATTRIBUTES),
        link_order=LinkOrder(options.link_order or LinkOrder.FIRST_N),
        link_timeout_millis=(
            DEFAULT_LINK_TIMEOUT_MILLIS
            if options.link_timeout_millis is None
            else options.link_timeout_millis
        ),
        max_retries=DEFAULT_MAX_RETRIES if options.max_retries is None else options.max_retries,
        wait_for_selector=options.wait_for_selector or "",
        per_link_options=dict(options.per_link_options or {}),
    )


def process_options(options: Union[CheckerOptions, dict]) -> CheckerOptions:
    """Validate options and fill in defaults."""
    if isinstance(options, dict):
        options = CheckerOptions.from_dict(options)
    return set_default_options(validate_input_options(options))


def lookup_per_link_option(options: CheckerOptions, url: str) -> Optional[PerLinkOption]:
    """Find the override configured for exactly this URL."""
    return options.per_link_options.get(url)


def resolve_link_policy(
    link: CandidateLink,
    options: CheckerOptions,
) -> LinkPolicy:
    """Layer a link's override on top of the global options.

    Precedence is per-link override, then global option, then default.
    Origin and followed links both default to STATUS_CLASS_2XX when no
    override gives an expected status.
    """
    override = link.per_link_option or lookup_per_link_option(options, link.target_url)

    timeout = options.link_timeout_millis
    if timeout is None:
        timeout = DEFAULT_LINK_TIMEOUT_MILLIS
    expected: ExpectedStatus = StatusClass(DEFAULT_EXPECTED_STATUS)

    if override is not None:
        if override.link_timeout_millis is not None:
            timeout = override.link_timeout_millis
        if override.expected_status_code is not None:
            expected = override.expected_status_code

    if expected == StatusClass.STATUS_CLASS_UNSPECIFIED:
        expected = StatusClass(DEFAULT_EXPECTED_STATUS)

    return LinkPolicy(timeout_millis=timeout, expected_status=expected)
