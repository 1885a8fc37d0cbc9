"""Execution environment lookups: project, region, run identifiers, metadata."""

import logging
import platform
import sys
import uuid
from importlib import metadata as importlib_metadata
from typing import Optional

import httpx

from linkprobe.config import Config
from linkprobe.constants import (
    METADATA_HEADERS,
    METADATA_PROJECT_ID_PATH,
    METADATA_REGION_PATH,
    METADATA_SERVER_URL,
    RUNTIME_METADATA_PACKAGES,
)

logger = logging.getLogger(__name__)


class Environment:
    """Resolves facts about where the checker is running.

    Values come from configuration first and fall back to the Google Cloud
    metadata server. Lookups that fail return an empty string; callers treat
    that as "unknown" rather than as an error.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize environment.

        Args:
            config: Configuration to read identifiers from (defaults to env)
            http_client: Client used to reach the metadata server
        """
        self.config = config or Config.from_env()
        self._http_client = http_client
        self._project_id: Optional[str] = None
        self._region: Optional[str] = None
        self._execution_id = self.config.execution_id or str(uuid.uuid4())

    @property
    def uptime_id(self) -> str:
        return self.config.uptime_id

    @property
    def execution_id(self) -> str:
        return self._execution_id

    async def _query_metadata_server(self, path: str) -> str:
        """Read one value from the metadata server, or "" if unavailable."""
        url = f"{METADATA_SERVER_URL}{path}"
        try:
            if self._http_client is not None:
                response = await self._http_client.get(
                    url, headers=METADATA_HEADERS, timeout=self.config.metadata_timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.config.metadata_timeout) as client:
                    response = await client.get(url, headers=METADATA_HEADERS)
            response.raise_for_status()
            return response.text.strip()
        except httpx.HTTPError as e:
            logger.debug(f"Metadata server lookup of {path} failed: {e}")
            return ""

    async def resolve_project_id(self) -> str:
        """Return the Google Cloud project id, or "" if it cannot be found."""
        if self._project_id is None:
            project_id = self.config.project_id
            if not project_id:
                project_id = await self._query_metadata_server(METADATA_PROJECT_ID_PATH)
            if not project_id:
                logger.warning("Unable to resolve Google Cloud project id")
            self._project_id = project_id
        return self._project_id

    async def get_execution_region(self) -> str:
        """Return the region this run executes in, or "" if unknown.

        The metadata server reports regions as projects/<n>/regions/<region>;
        only the last segment is kept.
        """
        if self._region is None:
            region = self.config.region
            if not region:
                region = await self._query_metadata_server(METADATA_REGION_PATH)
                region = region.rsplit("/", 1)[-1]
            if not region:
                logger.warning("Unable to resolve execution region")
            self._region = region
        return self._region

    def get_runtime_metadata(self) -> dict:
        """Snapshot of package versions and interpreter details."""
        runtime_metadata = {
            "python_version": platform.python_version(),
            "platform": sys.platform,
        }
        for package in RUNTIME_METADATA_PACKAGES:
            try:
                runtime_metadata[package] = importlib_metadata.version(package)
            except importlib_metadata.PackageNotFoundError:
                continue
        return runtime_metadata
