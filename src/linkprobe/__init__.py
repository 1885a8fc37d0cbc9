"""Synthetic broken link checker built on Playwright."""

__version__ = "0.1.0"

from linkprobe.checker import BrokenLinkChecker, RunState, run_broken_links
from linkprobe.config import Config, settings
from linkprobe.environment import Environment
from linkprobe.models import (
    CandidateLink,
    CaptureCondition,
    CheckerOptions,
    ErrorType,
    LinkOrder,
    LinkResult,
    PerLinkOption,
    RunResult,
    ScreenshotOptions,
    ScreenshotOutput,
    StatusClass,
    StorageContext,
    StructuredError,
)
from linkprobe.storage import (
    GcsStorageClient,
    get_folder_name_from_storage_location,
    get_or_create_storage_bucket,
    upload_screenshot_to_gcs,
)

__all__ = [
    # Core
    "BrokenLinkChecker",
    "RunState",
    "run_broken_links",
    "Environment",
    "Config",
    "settings",
    # Models
    "CandidateLink",
    "CaptureCondition",
    "CheckerOptions",
    "ErrorType",
    "LinkOrder",
    "LinkResult",
    "PerLinkOption",
    "RunResult",
    "ScreenshotOptions",
    "ScreenshotOutput",
    "StatusClass",
    "StorageContext",
    "StructuredError",
    # Storage
    "GcsStorageClient",
    "get_folder_name_from_storage_location",
    "get_or_create_storage_bucket",
    "upload_screenshot_to_gcs",
]
