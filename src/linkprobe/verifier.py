"""Verification of a single link: navigation, retries, redirects, status."""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from linkprobe.constants import (
    EXPONENTIAL_BACKOFF_BASE,
    FOLLOWED_LINK_WAIT_UNTIL,
    INITIAL_BACKOFF_DELAY_SECONDS,
    MAX_BACKOFF_DELAY_SECONDS,
    NON_RETRYABLE_ERROR_PATTERNS,
    ORIGIN_WAIT_UNTIL,
)
from linkprobe.exceptions import LinkNavigationError, RedirectLimitExceededError
from linkprobe.models import (
    CandidateLink,
    CheckerOptions,
    ErrorType,
    LinkResult,
    ScreenshotOutput,
    StorageContext,
    StructuredError,
    expected_status_to_json,
    now_iso,
    should_capture_screenshot,
    status_matches,
)
from linkprobe.options import resolve_link_policy
from linkprobe.storage import upload_screenshot_to_gcs

logger = logging.getLogger(__name__)


def is_timeout_error(error: BaseException) -> bool:
    return isinstance(error, (PlaywrightTimeoutError, asyncio.TimeoutError))


def is_retryable_error(error: BaseException) -> bool:
    """Determine if a failed navigation is worth another attempt.

    Timeouts and browser network errors are retryable. DNS failures,
    refused connections, invalid URLs and protocol errors are not, and
    neither is anything that is not a browser error. Status code
    mismatches never reach this check: they are not retried at all.
    """
    if isinstance(error, LinkNavigationError):
        return False

    error_str = str(error).lower()
    for pattern in NON_RETRYABLE_ERROR_PATTERNS:
        if pattern in error_str:
            return False

    return is_timeout_error(error) or isinstance(error, PlaywrightError)


def calculate_backoff_delay(retry_count: int, base_delay: float = INITIAL_BACKOFF_DELAY_SECONDS) -> float:
    """Calculate exponential backoff delay with jitter.

    Args:
        retry_count: Number of retries already attempted (0-indexed)
        base_delay: Delay before the first retry; 0 disables backoff

    Returns:
        Delay in seconds before next retry
    """
    if base_delay <= 0:
        return 0.0
    delay = base_delay * (EXPONENTIAL_BACKOFF_BASE ** retry_count)
    delay = min(delay, MAX_BACKOFF_DELAY_SECONDS)
    # Add jitter (±25%) so parallel retries spread out
    jitter = delay * random.uniform(-0.25, 0.25)
    return delay + jitter


def count_redirects(response) -> int:
    """Count the hops that led to response by walking redirected_from."""
    count = 0
    request = response.request.redirected_from
    while request is not None:
        count += 1
        request = request.redirected_from
    return count


class LinkVerifier:
    """Checks one link on a browser tab and reports the outcome as a LinkResult."""

    def __init__(
        self,
        storage: Optional[StorageContext] = None,
        backoff_seconds: float = INITIAL_BACKOFF_DELAY_SECONDS,
        file_name_factory: Optional[Callable[[], str]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the verifier.

        Args:
            storage: Screenshot storage for this run (no uploads when None)
            backoff_seconds: Base delay between retries
            file_name_factory: Names screenshot files (random by default)
            sleep: Awaitable used to wait between retries
        """
        self.storage = storage or StorageContext()
        self.backoff_seconds = backoff_seconds
        self._file_name_factory = file_name_factory
        self._sleep = sleep

    async def _navigate_with_retries(
        self,
        page,
        url: str,
        timeout_millis: int,
        max_retries: int,
        wait_until: str,
    ):
        """Navigate to url, retrying transient failures.

        Returns:
            Tuple of (response or None, retries used, last error or None)
        """
        last_error: Optional[Exception] = None
        attempt = 0

        for attempt in range(max_retries + 1):
            if attempt > 0:
                await self._sleep(calculate_backoff_delay(attempt - 1, self.backoff_seconds))

            try:
                response = await page.goto(url, timeout=timeout_millis, wait_until=wait_until)
                if response is None:
                    raise LinkNavigationError(url, "no response received")
                return response, attempt, None
            except Exception as e:
                last_error = e
                if not is_retryable_error(e):
                    break
                if attempt < max_retries:
                    logger.info(f"  🔄 Will retry ({attempt + 1}/{max_retries}): {url} ({e})")

        return None, attempt, last_error

    def _navigation_failure(
        self, url: str, error: Exception, timeout_millis: int, retries: int
    ) -> StructuredError:
        if is_timeout_error(error):
            return StructuredError(
                ErrorType.TIMEOUT_ERROR,
                f"Timed out after {timeout_millis}ms navigating to {url} "
                f"({retries} retries)",
            )
        return StructuredError(ErrorType.NAVIGATION_ERROR, str(error) or f"Failed to navigate to {url}")

    async def check_link(
        self,
        page,
        link: CandidateLink,
        options: CheckerOptions,
        is_origin: bool = False,
    ) -> LinkResult:
        """Check one link end-to-end.

        Never raises: every failure ends up in the result's error field.

        Args:
            page: Browser tab owned by the caller
            link: Link to check
            options: Processed checker options
            is_origin: Whether this is the origin link (fully rendered)

        Returns:
            LinkResult for the link
        """
        link_start_time = now_iso()
        policy = resolve_link_policy(link, options)
        wait_until = ORIGIN_WAIT_UNTIL if is_origin else FOLLOWED_LINK_WAIT_UNTIL

        passed = False
        status_code: Optional[int] = None
        redirect_count = 0
        retries = 0
        error: Optional[StructuredError] = None

        try:
            response, retries, nav_error = await self._navigate_with_retries(
                page, link.target_url, policy.timeout_millis, options.max_retries or 0, wait_until
            )
            if nav_error is not None:
                error = self._navigation_failure(
                    link.target_url, nav_error, policy.timeout_millis, retries
                )
            else:
                status_code = response.status
                redirect_count = count_redirects(response)
                if options.max_redirects is not None and redirect_count > options.max_redirects:
                    raise RedirectLimitExceededError(
                        link.target_url, redirect_count, options.max_redirects
                    )
                passed = status_matches(status_code, policy.expected_status)
                if not passed:
                    error = StructuredError(
                        ErrorType.STATUS_MISMATCH_ERROR,
                        f"Expected status {expected_status_to_json(policy.expected_status)} "
                        f"but received {status_code} for {link.target_url}",
                    )
        except RedirectLimitExceededError as e:
            passed = False
            error = StructuredError(ErrorType.NAVIGATION_ERROR, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error checking {link.target_url}")
            passed = False
            error = StructuredError(
                ErrorType.NAVIGATION_ERROR,
                f"Unexpected error checking {link.target_url}: {e}",
            )

        if passed:
            logger.info(f"  ✓ {link.target_url} ({status_code})")
        else:
            logger.warning(f"  ❌ {link.target_url}: {error.error_message}")

        screenshot = ScreenshotOutput()
        screenshot_options = options.screenshot_options
        if should_capture_screenshot(screenshot_options.capture_condition, passed):
            upload_kwargs = {"timeout_millis": policy.timeout_millis}
            if self._file_name_factory is not None:
                upload_kwargs["file_name_factory"] = self._file_name_factory
            screenshot = await upload_screenshot_to_gcs(
                page, self.storage, screenshot_options.storage_location, **upload_kwargs
            )

        return LinkResult(
            target_url=link.target_url,
            anchor_text=link.anchor_text,
            html_element=link.html_element,
            passed=passed,
            expected_status_code=policy.expected_status,
            status_code=status_code,
            redirect_count=redirect_count,
            retries=retries,
            is_origin=is_origin,
            source_url=options.origin_url,
            link_start_time=link_start_time,
            link_end_time=now_iso(),
            screenshot=screenshot,
            error=error,
        )
