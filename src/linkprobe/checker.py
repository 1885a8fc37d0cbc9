"""Run orchestration: origin check, scrape, verify, aggregate."""

import logging
import random
from enum import Enum
from typing import Callable, Optional, Union

from linkprobe.config import Config
from linkprobe.constants import GENERIC_ERROR_MESSAGE, INITIAL_BACKOFF_DELAY_SECONDS
from linkprobe.coordinator import check_links
from linkprobe.environment import Environment
from linkprobe.infrastructure import BrowserPool
from linkprobe.models import CandidateLink, CheckerOptions, RunResult, now_iso
from linkprobe.options import process_options
from linkprobe.scraper import scrape_links
from linkprobe.storage import GcsStorageClient, StorageClient, prepare_storage
from linkprobe.verifier import LinkVerifier

logger = logging.getLogger(__name__)


class RunState(Enum):
    """Stages of a broken link checker run."""
    INIT = "init"
    ORIGIN_CHECK = "origin_check"
    FAILED_SHORT_CIRCUIT = "failed_short_circuit"
    SCRAPE = "scrape"
    VERIFY_ALL = "verify_all"
    AGGREGATE = "aggregate"
    DONE = "done"
    ERROR = "error"


def _origin_url_of(input_options: Union[CheckerOptions, dict]) -> str:
    if isinstance(input_options, dict):
        return str(input_options.get("origin_url", ""))
    return getattr(input_options, "origin_url", "")


class BrokenLinkChecker:
    """Checks an origin page and the links found on it.

    A run always produces a RunResult. The origin link gates the rest of
    the run: when it fails, nothing is scraped and the result holds only
    the origin. Unexpected failures (including a browser that will not
    launch) produce a minimal generic result instead of an exception.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        environment: Optional[Environment] = None,
        browser_pool: Optional[BrowserPool] = None,
        storage_client_factory: Callable[[], StorageClient] = GcsStorageClient,
        rng: Optional[random.Random] = None,
        backoff_seconds: float = INITIAL_BACKOFF_DELAY_SECONDS,
    ):
        """Initialize the checker.

        Args:
            config: Runtime configuration (defaults to environment variables)
            environment: Execution environment lookups
            browser_pool: Browser pool to use instead of launching a new one
            storage_client_factory: Builds the screenshot storage client
            rng: Random source for RANDOM link order
            backoff_seconds: Base delay between navigation retries
        """
        self.config = config or Config.from_env()
        self.environment = environment or Environment(self.config)
        self._browser_pool = browser_pool
        self._storage_client_factory = storage_client_factory
        self._rng = rng
        self._backoff_seconds = backoff_seconds
        self.state = RunState.INIT

    def _set_state(self, state: RunState) -> None:
        logger.debug(f"Run state: {self.state.value} -> {state.value}")
        self.state = state

    def _make_pool(self, options: CheckerOptions) -> BrowserPool:
        if self._browser_pool is not None:
            return self._browser_pool
        return BrowserPool(
            max_size=self.config.max_concurrent_links,
            headless=self.config.headless,
            timeout_ms=options.link_timeout_millis,
            user_agent=self.config.user_agent,
        )

    async def run(self, input_options: Union[CheckerOptions, dict]) -> RunResult:
        """Run the checker once.

        Args:
            input_options: CheckerOptions or an equivalent mapping

        Returns:
            RunResult with the origin result first, followed by one result
            per scraped link in scrape order
        """
        start_time = now_iso()
        self._set_state(RunState.INIT)
        runtime_metadata = self.environment.get_runtime_metadata()
        pool: Optional[BrowserPool] = None

        try:
            options = process_options(input_options)
            logger.info(f"Starting broken link check of {options.origin_url}")

            storage, storage_errors = await prepare_storage(
                options.screenshot_options.capture_condition,
                options.screenshot_options.storage_location,
                self.environment,
                self._storage_client_factory,
            )
            verifier = LinkVerifier(storage, backoff_seconds=self._backoff_seconds)

            pool = self._make_pool(options)
            await pool.start()

            self._set_state(RunState.ORIGIN_CHECK)
            async with pool.acquire() as origin_page:
                origin_result = await verifier.check_link(
                    origin_page, CandidateLink(target_url=options.origin_url), options, is_origin=True
                )

                if not origin_result.passed:
                    self._set_state(RunState.FAILED_SHORT_CIRCUIT)
                    logger.warning(f"Origin link {options.origin_url} failed; skipping followed links")
                    result = RunResult.from_links(
                        start_time, runtime_metadata, options, [origin_result], storage_errors
                    )
                    self._set_state(RunState.DONE)
                    return result

                self._set_state(RunState.SCRAPE)
                links = await scrape_links(origin_page, options, self._rng)

            self._set_state(RunState.VERIFY_ALL)
            followed_results = await check_links(pool, links, options, verifier)

            self._set_state(RunState.AGGREGATE)
            result = RunResult.from_links(
                start_time,
                runtime_metadata,
                options,
                [origin_result, *followed_results],
                storage_errors,
            )
            logger.info(
                f"Checked {result.link_count} links: {result.passed_link_count} passed, "
                f"{result.failed_link_count} failed"
            )
            self._set_state(RunState.DONE)
            return result

        except Exception as e:
            self._set_state(RunState.ERROR)
            logger.exception("Broken link checker run failed")
            message = str(e) or GENERIC_ERROR_MESSAGE.format(
                origin_url=_origin_url_of(input_options)
            )
            return RunResult.generic(start_time, message, runtime_metadata)

        finally:
            if pool is not None:
                await pool.stop()


async def run_broken_links(
    options: Union[CheckerOptions, dict],
    **checker_kwargs,
) -> RunResult:
    """Check options.origin_url and its links once; see BrokenLinkChecker."""
    return await BrokenLinkChecker(**checker_kwargs).run(options)
