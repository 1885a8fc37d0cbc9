"""Data models for broken link checking."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from linkprobe.constants import (
    DEFAULT_GET_ATTRIBUTES,
    DEFAULT_LINK_LIMIT,
    DEFAULT_LINK_TIMEOUT_MILLIS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_QUERY_SELECTOR,
)


class LinkOrder(str, Enum):
    """Order in which scraped links are picked before truncation."""
    FIRST_N = "FIRST_N"
    RANDOM = "RANDOM"


class StatusClass(str, Enum):
    """Coarse grouping of HTTP status codes."""
    STATUS_CLASS_UNSPECIFIED = "STATUS_CLASS_UNSPECIFIED"
    STATUS_CLASS_1XX = "STATUS_CLASS_1XX"
    STATUS_CLASS_2XX = "STATUS_CLASS_2XX"
    STATUS_CLASS_3XX = "STATUS_CLASS_3XX"
    STATUS_CLASS_4XX = "STATUS_CLASS_4XX"
    STATUS_CLASS_5XX = "STATUS_CLASS_5XX"
    STATUS_CLASS_ANY = "STATUS_CLASS_ANY"


class CaptureCondition(str, Enum):
    """When a screenshot of a checked link is taken."""
    NONE = "NONE"
    FAILING = "FAILING"
    ALWAYS = "ALWAYS"


class ErrorType(str, Enum):
    """Kinds of structured errors reported in results."""
    NAVIGATION_ERROR = "NavigationError"
    STATUS_MISMATCH_ERROR = "StatusMismatchError"
    TIMEOUT_ERROR = "TimeoutError"
    STORAGE_VALIDATION_ERROR = "StorageValidationError"
    BUCKET_CREATION_ERROR = "BucketCreationError"
    SCREENSHOT_FILE_UPLOAD_ERROR = "ScreenshotFileUploadError"
    STORAGE_CLIENT_INITIALIZATION_ERROR = "StorageClientInitializationError"
    GENERIC_ERROR = "GenericError"


ExpectedStatus = Union[StatusClass, int]

# Numeric range covered by each concrete status class (inclusive)
_STATUS_CLASS_RANGES = {
    StatusClass.STATUS_CLASS_1XX: (100, 199),
    StatusClass.STATUS_CLASS_2XX: (200, 299),
    StatusClass.STATUS_CLASS_3XX: (300, 399),
    StatusClass.STATUS_CLASS_4XX: (400, 499),
    StatusClass.STATUS_CLASS_5XX: (500, 599),
}


def parse_expected_status(value: Any) -> ExpectedStatus:
    """Coerce a raw expected status (class name or code) into its typed form.

    Args:
        value: A StatusClass, its name, an int, or a numeric string

    Returns:
        StatusClass member or exact integer code

    Raises:
        ValueError: If the value is neither a known class nor a number
    """
    if isinstance(value, StatusClass):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid expected status code: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if value.isdigit():
            return int(value)
        try:
            return StatusClass(value)
        except ValueError:
            pass
    raise ValueError(f"Invalid expected status code: {value!r}")


def status_matches(status_code: Optional[int], expected: ExpectedStatus) -> bool:
    """Check an observed status code against an expected code or class.

    STATUS_CLASS_ANY matches everything (even a missing code) and
    STATUS_CLASS_UNSPECIFIED is treated as STATUS_CLASS_2XX.
    """
    if expected == StatusClass.STATUS_CLASS_ANY:
        return True
    if status_code is None:
        return False
    if isinstance(expected, StatusClass):
        if expected == StatusClass.STATUS_CLASS_UNSPECIFIED:
            expected = StatusClass.STATUS_CLASS_2XX
        low, high = _STATUS_CLASS_RANGES[expected]
        return low <= status_code <= high
    return status_code == expected


def expected_status_to_json(expected: ExpectedStatus) -> Union[str, int]:
    if isinstance(expected, StatusClass):
        return expected.value
    return expected


def should_capture_screenshot(condition: CaptureCondition, passed: bool) -> bool:
    """Decide whether a screenshot is taken for a link."""
    if condition == CaptureCondition.ALWAYS:
        return True
    return condition == CaptureCondition.FAILING and not passed


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class StructuredError:
    """An error reported as a value inside a result."""
    error_type: ErrorType
    error_message: str

    def to_dict(self) -> dict:
        return {
            "error_type": self.error_type.value,
            "error_message": self.error_message,
        }


def error_to_json(error: Optional[StructuredError]) -> dict:
    """Serialize an optional error; absence is an empty object, never null."""
    return error.to_dict() if error else {}


@dataclass(frozen=True)
class PerLinkOption:
    """Settings that override the global options for one exact URL."""
    link_timeout_millis: Optional[int] = None
    expected_status_code: Optional[ExpectedStatus] = None

    @classmethod
    def from_dict(cls, data: dict) -> "PerLinkOption":
        expected = data.get("expected_status_code")
        return cls(
            link_timeout_millis=data.get("link_timeout_millis"),
            expected_status_code=(
                parse_expected_status(expected) if expected is not None else None
            ),
        )

    def to_dict(self) -> dict:
        result: dict[str, Any] = {}
        if self.link_timeout_millis is not None:
            result["link_timeout_millis"] = self.link_timeout_millis
        if self.expected_status_code is not None:
            result["expected_status_code"] = expected_status_to_json(
                self.expected_status_code
            )
        return result


@dataclass
class ScreenshotOptions:
    """Screenshot capture policy and destination."""
    capture_condition: CaptureCondition = CaptureCondition.FAILING
    storage_location: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "ScreenshotOptions":
        return cls(
            capture_condition=CaptureCondition(
                data.get("capture_condition", CaptureCondition.FAILING.value)
            ),
            storage_location=data.get("storage_location") or "",
        )

    def to_dict(self) -> dict:
        return {
            "capture_condition": self.capture_condition.value,
            "storage_location": self.storage_location,
        }


@dataclass
class CheckerOptions:
    """Options for one broken link checker run.

    Only origin_url is required; `options.process_options` validates the
    values and fills in defaults for anything left unset.
    """
    origin_url: str
    link_limit: Optional[int] = DEFAULT_LINK_LIMIT
    query_selector_all: str = DEFAULT_QUERY_SELECTOR
    get_attributes: list[str] = field(default_factory=lambda: list(DEFAULT_GET_ATTRIBUTES))
    link_order: LinkOrder = LinkOrder.FIRST_N
    link_timeout_millis: Optional[int] = DEFAULT_LINK_TIMEOUT_MILLIS
    max_retries: Optional[int] = DEFAULT_MAX_RETRIES
    max_redirects: Optional[int] = None  # None = unbounded
    wait_for_selector: str = ""
    per_link_options: dict[str, PerLinkOption] = field(default_factory=dict)
    screenshot_options: ScreenshotOptions = field(default_factory=ScreenshotOptions)

    @classmethod
    def from_dict(cls, data: dict) -> "CheckerOptions":
        """Build options from a JSON/YAML-shaped mapping.

        Args:
            data: Mapping using the serialized field names

        Returns:
            CheckerOptions with unset fields left at their defaults
        """
        if "origin_url" not in data:
            raise ValueError("origin_url is required")

        kwargs: dict[str, Any] = {"origin_url": data["origin_url"]}
        for name in (
            "link_limit",
            "query_selector_all",
            "link_timeout_millis",
            "max_retries",
            "max_redirects",
            "wait_for_selector",
        ):
            if name in data:
                kwargs[name] = data[name]
        if "get_attributes" in data:
            kwargs["get_attributes"] = list(data["get_attributes"])
        if "link_order" in data:
            kwargs["link_order"] = LinkOrder(data["link_order"])
        if "per_link_options" in data:
            kwargs["per_link_options"] = {
                url: option if isinstance(option, PerLinkOption) else PerLinkOption.from_dict(option)
                for url, option in (data["per_link_options"] or {}).items()
            }
        if "screenshot_options" in data:
            kwargs["screenshot_options"] = ScreenshotOptions.from_dict(
                data["screenshot_options"] or {}
            )
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return {
            "origin_url": self.origin_url,
            "link_limit": self.link_limit,
            "query_selector_all": self.query_selector_all,
            "get_attributes": list(self.get_attributes),
            "link_order": self.link_order.value,
            "link_timeout_millis": self.link_timeout_millis,
            "max_retries": self.max_retries,
            "max_redirects": self.max_redirects,
            "wait_for_selector": self.wait_for_selector,
            "per_link_options": {
                url: option.to_dict() for url, option in self.per_link_options.items()
            },
            "screenshot_options": self.screenshot_options.to_dict(),
        }


@dataclass(frozen=True)
class CandidateLink:
    """A link scraped from the origin page, waiting to be verified."""
    target_url: str
    anchor_text: str = ""
    html_element: str = ""
    per_link_option: Optional[PerLinkOption] = None


@dataclass(frozen=True)
class LinkPolicy:
    """Effective timeout and expected status for one link."""
    timeout_millis: int
    expected_status: ExpectedStatus


@dataclass(frozen=True)
class ScreenshotOutput:
    """Destination of an uploaded screenshot and any error taking it."""
    screenshot_file: str = ""
    screenshot_error: Optional[StructuredError] = None

    def to_dict(self) -> dict:
        return {
            "screenshot_file": self.screenshot_file,
            "screenshot_error": error_to_json(self.screenshot_error),
        }


@dataclass(frozen=True)
class LinkResult:
    """Outcome of checking one link."""
    target_url: str
    anchor_text: str
    html_element: str
    passed: bool
    expected_status_code: ExpectedStatus
    status_code: Optional[int] = None
    redirect_count: int = 0
    retries: int = 0
    is_origin: bool = False
    source_url: str = ""
    link_start_time: str = ""
    link_end_time: str = ""
    screenshot: ScreenshotOutput = field(default_factory=ScreenshotOutput)
    error: Optional[StructuredError] = None

    def to_dict(self) -> dict:
        return {
            "link_passed": self.passed,
            "expected_status_code": expected_status_to_json(self.expected_status_code),
            "source_uri": self.source_url,
            "target_uri": self.target_url,
            "html_element": self.html_element,
            "anchor_text": self.anchor_text,
            "status_code": self.status_code,
            "redirect_count": self.redirect_count,
            "retries": self.retries,
            "is_origin": self.is_origin,
            "link_start_time": self.link_start_time,
            "link_end_time": self.link_end_time,
            "error": error_to_json(self.error),
            "screenshot_output": self.screenshot.to_dict(),
        }


@dataclass
class StorageContext:
    """Storage handles and identifiers used for one run.

    Both client and bucket are None when screenshots are not stored;
    every storage operation is then a no-op.
    """
    client: Optional[Any] = None
    bucket: Optional[str] = None
    uptime_id: str = ""
    execution_id: str = ""

    @property
    def is_configured(self) -> bool:
        return self.client is not None and self.bucket is not None


@dataclass
class RunResult:
    """Result of one broken link checker run."""
    start_time: str
    runtime_metadata: dict = field(default_factory=dict)
    options: Optional[CheckerOptions] = None
    link_results: list[LinkResult] = field(default_factory=list)
    passed: bool = False
    end_time: str = ""
    errors: list[StructuredError] = field(default_factory=list)
    generic_error: Optional[StructuredError] = None

    @classmethod
    def from_links(
        cls,
        start_time: str,
        runtime_metadata: dict,
        options: CheckerOptions,
        link_results: list[LinkResult],
        errors: Optional[list[StructuredError]] = None,
    ) -> "RunResult":
        """Aggregate link results; the run passes only if every link passed."""
        return cls(
            start_time=start_time,
            runtime_metadata=runtime_metadata,
            options=options,
            link_results=list(link_results),
            passed=bool(link_results) and all(r.passed for r in link_results),
            end_time=now_iso(),
            errors=list(errors or []),
        )

    @classmethod
    def generic(
        cls,
        start_time: str,
        error_message: str,
        runtime_metadata: Optional[dict] = None,
    ) -> "RunResult":
        """Minimal result for a run that could not complete."""
        return cls(
            start_time=start_time,
            runtime_metadata=runtime_metadata or {},
            passed=False,
            end_time=now_iso(),
            generic_error=StructuredError(ErrorType.GENERIC_ERROR, error_message),
        )

    @property
    def origin_link_result(self) -> Optional[LinkResult]:
        return self.link_results[0] if self.link_results else None

    @property
    def link_count(self) -> int:
        return len(self.link_results)

    @property
    def passed_link_count(self) -> int:
        return sum(1 for r in self.link_results if r.passed)

    @property
    def failed_link_count(self) -> int:
        return self.link_count - self.passed_link_count

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "runtime_metadata": self.runtime_metadata,
            "options": self.options.to_dict() if self.options else {},
            "link_results": [r.to_dict() for r in self.link_results],
            "passed": self.passed,
            "link_count": self.link_count,
            "passed_link_count": self.passed_link_count,
            "failed_link_count": self.failed_link_count,
            "errors": [e.to_dict() for e in self.errors],
            "generic_error": error_to_json(self.generic_error),
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
