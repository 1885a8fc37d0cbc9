"""
Screenshot storage.

Resolves (or creates) the Cloud Storage bucket screenshots are written to,
and captures and uploads screenshots of checked pages. Nothing here raises
to the caller: failures come back as StructuredError values so that storage
problems never abort link verification.
"""

import asyncio
import logging
import uuid
from typing import Any, Callable, Optional, Protocol

from linkprobe.constants import (
    DEFAULT_BUCKET_INFIX,
    SCREENSHOT_CONTENT_TYPE,
    SCREENSHOT_FILE_EXTENSION,
    SCREENSHOT_UPLOAD_ERROR_MESSAGE,
)
from linkprobe.models import (
    CaptureCondition,
    ErrorType,
    ScreenshotOutput,
    StorageContext,
    StructuredError,
)

logger = logging.getLogger(__name__)


class StorageClient(Protocol):
    """Minimal object storage capability used for screenshots."""

    async def bucket_exists(self, bucket_name: str) -> bool: ...

    async def create_bucket(self, bucket_name: str) -> str: ...

    async def upload(
        self, bucket_name: str, path: str, data: bytes, content_type: str
    ) -> None: ...


class GcsStorageClient:
    """StorageClient backed by google-cloud-storage.

    The google-cloud-storage client is blocking, so every call runs in a
    worker thread. The library is imported lazily so that runs without
    screenshot storage do not need Google credentials.
    """

    def __init__(self, project: Optional[str] = None, client: Any = None):
        if client is None:
            try:
                from google.cloud import storage
            except ImportError:
                raise ImportError(
                    "google-cloud-storage package not installed. "
                    "Install with: pip install google-cloud-storage"
                )
            client = storage.Client(project=project or None)
        self._client = client

    async def bucket_exists(self, bucket_name: str) -> bool:
        bucket = self._client.bucket(bucket_name)
        return await asyncio.to_thread(bucket.exists)

    async def create_bucket(self, bucket_name: str) -> str:
        bucket = self._client.bucket(bucket_name)
        await asyncio.to_thread(bucket.create)
        return bucket_name

    async def upload(
        self, bucket_name: str, path: str, data: bytes, content_type: str
    ) -> None:
        blob = self._client.bucket(bucket_name).blob(path)
        await asyncio.to_thread(blob.upload_from_string, data, content_type=content_type)


def create_storage_client_if_storage_selected(
    capture_condition: CaptureCondition,
    client_factory: Callable[[], StorageClient] = GcsStorageClient,
) -> tuple[Optional[StorageClient], Optional[StructuredError]]:
    """Create a storage client unless screenshots are disabled.

    Args:
        capture_condition: Screenshot capture policy of the run
        client_factory: Builds the storage client

    Returns:
        Tuple of (client or None, error or None)
    """
    if capture_condition == CaptureCondition.NONE:
        return None, None

    try:
        return client_factory(), None
    except Exception as e:
        logger.exception("Failed to initialize storage client")
        return None, StructuredError(
            ErrorType.STORAGE_CLIENT_INITIALIZATION_ERROR,
            f"Failed to initialize Cloud Storage client: {e}",
        )


def get_bucket_name_from_storage_location(storage_location: str) -> str:
    """Return the bucket segment of a storage location ("" if none)."""
    if not storage_location:
        return ""
    return storage_location.split("/", 1)[0]


def get_folder_name_from_storage_location(storage_location: str) -> str:
    """Return everything after the bucket name of a storage location.

    >>> get_folder_name_from_storage_location("bucket/a/b")
    'a/b'
    >>> get_folder_name_from_storage_location("bucket")
    ''
    """
    if not storage_location or "/" not in storage_location:
        return ""
    return storage_location.split("/", 1)[1]


async def get_or_create_storage_bucket(
    client: StorageClient,
    storage_location: str,
    environment,
) -> tuple[Optional[str], Optional[StructuredError]]:
    """Return a usable bucket for screenshots, creating it if needed.

    The bucket named by storage_location is used when given; otherwise a
    default of <projectId>-synthetics-<region> is derived. Creation is only
    attempted after the bucket was confirmed to be absent.

    Args:
        client: Storage client
        storage_location: User supplied "<bucket>[/<folder>...]", may be empty
        environment: Resolves project id and region for the default bucket

    Returns:
        Tuple of (bucket name or None, error or None)
    """
    bucket_name = get_bucket_name_from_storage_location(storage_location)

    if not bucket_name:
        project_id = await environment.resolve_project_id()
        region = await environment.get_execution_region()
        if not project_id or not region:
            # The environment already logged why the lookup failed
            return None, None
        bucket_name = f"{project_id}-{DEFAULT_BUCKET_INFIX}-{region}"

    try:
        exists = await client.bucket_exists(bucket_name)
    except Exception as e:
        logger.exception(f"Failed to check existence of bucket {bucket_name}")
        return None, StructuredError(
            ErrorType.STORAGE_VALIDATION_ERROR,
            f"Failed to validate storage bucket {bucket_name}: {e}",
        )

    if exists:
        return bucket_name, None

    try:
        await client.create_bucket(bucket_name)
    except Exception as e:
        logger.exception(f"Failed to create bucket {bucket_name}")
        return None, StructuredError(
            ErrorType.BUCKET_CREATION_ERROR,
            f"Failed to create storage bucket {bucket_name}: {e}",
        )

    logger.info(f"Created storage bucket {bucket_name}")
    return bucket_name, None


def _default_file_name() -> str:
    return uuid.uuid4().hex


def build_screenshot_path(
    folder: str, uptime_id: str, execution_id: str, file_name: str
) -> str:
    """Join the destination path, skipping empty segments."""
    parts = [folder.strip("/"), uptime_id, execution_id, f"{file_name}{SCREENSHOT_FILE_EXTENSION}"]
    return "/".join(part for part in parts if part)


async def upload_screenshot_to_gcs(
    page,
    storage: StorageContext,
    storage_location: str,
    file_name_factory: Callable[[], str] = _default_file_name,
    timeout_millis: Optional[int] = None,
) -> ScreenshotOutput:
    """Take a screenshot of page and upload it.

    Does nothing when storage is not configured. A failure to capture or
    upload is reported as ScreenshotFileUploadError with an empty path.

    Args:
        page: Browser page to capture
        storage: Storage handles and run identifiers
        storage_location: User supplied storage location
        file_name_factory: Produces the file name (without extension)
        timeout_millis: Screenshot capture timeout

    Returns:
        ScreenshotOutput with the destination path or an error
    """
    if not storage.is_configured:
        return ScreenshotOutput()

    try:
        screenshot_kwargs: dict[str, Any] = {"full_page": True}
        if timeout_millis:
            screenshot_kwargs["timeout"] = timeout_millis
        image = await page.screenshot(**screenshot_kwargs)

        destination = build_screenshot_path(
            get_folder_name_from_storage_location(storage_location),
            storage.uptime_id,
            storage.execution_id,
            file_name_factory(),
        )
        await storage.client.upload(
            storage.bucket, destination, image, SCREENSHOT_CONTENT_TYPE
        )
    except Exception:
        logger.exception(f"Screenshot upload failed for {page.url}")
        return ScreenshotOutput(
            screenshot_file="",
            screenshot_error=StructuredError(
                ErrorType.SCREENSHOT_FILE_UPLOAD_ERROR,
                SCREENSHOT_UPLOAD_ERROR_MESSAGE.format(url=page.url),
            ),
        )

    logger.debug(f"Uploaded screenshot to gs://{storage.bucket}/{destination}")
    return ScreenshotOutput(screenshot_file=destination)


async def prepare_storage(
    capture_condition: CaptureCondition,
    storage_location: str,
    environment,
    client_factory: Callable[[], StorageClient] = GcsStorageClient,
) -> tuple[StorageContext, list[StructuredError]]:
    """Set up screenshot storage once per run, before any verification.

    Returns:
        Tuple of (StorageContext, run-level storage errors)
    """
    storage = StorageContext(
        uptime_id=environment.uptime_id,
        execution_id=environment.execution_id,
    )
    errors: list[StructuredError] = []

    client, error = create_storage_client_if_storage_selected(capture_condition, client_factory)
    if error:
        errors.append(error)
    if client is None:
        return storage, errors

    bucket, error = await get_or_create_storage_bucket(client, storage_location, environment)
    if error:
        errors.append(error)
    if bucket is not None:
        storage.client = client
        storage.bucket = bucket

    return storage, errors
