"""Tests for result and option data models."""

import json

import pytest

from linkprobe.models import (
    CaptureCondition,
    CheckerOptions,
    ErrorType,
    LinkOrder,
    LinkResult,
    PerLinkOption,
    RunResult,
    ScreenshotOutput,
    StatusClass,
    StructuredError,
    error_to_json,
    parse_expected_status,
    should_capture_screenshot,
    status_matches,
)


def _link_result(passed=True, **kwargs):
    defaults = dict(
        target_url="https://example.com/a",
        anchor_text="A",
        html_element="a",
        passed=passed,
        expected_status_code=StatusClass.STATUS_CLASS_2XX,
        status_code=200 if passed else 404,
    )
    defaults.update(kwargs)
    return LinkResult(**defaults)


class TestStatusMatches:
    """Test status code matching against codes and classes."""

    @pytest.mark.parametrize("code,status_class,expected", [
        (200, StatusClass.STATUS_CLASS_2XX, True),
        (299, StatusClass.STATUS_CLASS_2XX, True),
        (300, StatusClass.STATUS_CLASS_2XX, False),
        (301, StatusClass.STATUS_CLASS_3XX, True),
        (404, StatusClass.STATUS_CLASS_4XX, True),
        (503, StatusClass.STATUS_CLASS_5XX, True),
        (101, StatusClass.STATUS_CLASS_1XX, True),
        (500, StatusClass.STATUS_CLASS_4XX, False),
    ])
    def test_status_classes(self, code, status_class, expected):
        assert status_matches(code, status_class) is expected

    def test_any_matches_everything(self):
        assert status_matches(200, StatusClass.STATUS_CLASS_ANY)
        assert status_matches(500, StatusClass.STATUS_CLASS_ANY)
        assert status_matches(None, StatusClass.STATUS_CLASS_ANY)

    def test_unspecified_treated_as_2xx(self):
        assert status_matches(204, StatusClass.STATUS_CLASS_UNSPECIFIED)
        assert not status_matches(404, StatusClass.STATUS_CLASS_UNSPECIFIED)

    def test_exact_code(self):
        assert status_matches(404, 404)
        assert not status_matches(200, 404)

    def test_missing_code_never_matches_concrete_expectation(self):
        assert not status_matches(None, StatusClass.STATUS_CLASS_2XX)
        assert not status_matches(None, 200)


class TestParseExpectedStatus:
    """Test coercion of raw expected status values."""

    def test_class_name(self):
        assert parse_expected_status("STATUS_CLASS_3XX") == StatusClass.STATUS_CLASS_3XX

    def test_integer_and_numeric_string(self):
        assert parse_expected_status(404) == 404
        assert parse_expected_status("404") == 404

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            parse_expected_status("teapot")
        with pytest.raises(ValueError):
            parse_expected_status(True)


class TestShouldCaptureScreenshot:
    """Test the screenshot capture decision table."""

    @pytest.mark.parametrize("condition,passed,expected", [
        (CaptureCondition.NONE, True, False),
        (CaptureCondition.NONE, False, False),
        (CaptureCondition.FAILING, True, False),
        (CaptureCondition.FAILING, False, True),
        (CaptureCondition.ALWAYS, True, True),
        (CaptureCondition.ALWAYS, False, True),
    ])
    def test_decision(self, condition, passed, expected):
        assert should_capture_screenshot(condition, passed) is expected


class TestErrorSerialization:
    """Test that absent errors serialize as empty objects."""

    def test_absent_error_is_empty_object(self):
        assert error_to_json(None) == {}

    def test_present_error(self):
        error = StructuredError(ErrorType.TIMEOUT_ERROR, "too slow")
        assert error_to_json(error) == {
            "error_type": "TimeoutError",
            "error_message": "too slow",
        }

    def test_link_result_without_errors(self):
        data = _link_result().to_dict()
        assert data["error"] == {}
        assert data["screenshot_output"] == {"screenshot_file": "", "screenshot_error": {}}

    def test_link_result_keys(self):
        data = _link_result(source_url="https://example.com").to_dict()
        assert data["link_passed"] is True
        assert data["expected_status_code"] == "STATUS_CLASS_2XX"
        assert data["source_uri"] == "https://example.com"
        assert data["target_uri"] == "https://example.com/a"

    def test_screenshot_output_with_error(self):
        output = ScreenshotOutput(
            screenshot_error=StructuredError(ErrorType.SCREENSHOT_FILE_UPLOAD_ERROR, "boom")
        )
        assert output.to_dict()["screenshot_error"]["error_type"] == "ScreenshotFileUploadError"


class TestCheckerOptions:
    """Test options construction from mappings."""

    def test_from_dict_minimal(self):
        options = CheckerOptions.from_dict({"origin_url": "https://example.com"})
        assert options.origin_url == "https://example.com"
        assert options.link_limit == 10
        assert options.link_order == LinkOrder.FIRST_N
        assert options.screenshot_options.capture_condition == CaptureCondition.FAILING

    def test_from_dict_requires_origin(self):
        with pytest.raises(ValueError, match="origin_url"):
            CheckerOptions.from_dict({"link_limit": 5})

    def test_from_dict_nested(self):
        options = CheckerOptions.from_dict({
            "origin_url": "https://example.com",
            "link_order": "RANDOM",
            "per_link_options": {
                "https://example.com/old": {"expected_status_code": "STATUS_CLASS_3XX"},
                "https://example.com/slow": {"link_timeout_millis": 100},
            },
            "screenshot_options": {
                "capture_condition": "ALWAYS",
                "storage_location": "bucket/folder",
            },
        })
        assert options.link_order == LinkOrder.RANDOM
        assert options.per_link_options["https://example.com/old"] == PerLinkOption(
            expected_status_code=StatusClass.STATUS_CLASS_3XX
        )
        assert options.per_link_options["https://example.com/slow"].link_timeout_millis == 100
        assert options.screenshot_options.storage_location == "bucket/folder"

    def test_to_dict_is_json_serializable(self):
        options = CheckerOptions(
            origin_url="https://example.com",
            per_link_options={"https://example.com/x": PerLinkOption(expected_status_code=404)},
        )
        data = json.loads(json.dumps(options.to_dict()))
        assert data["per_link_options"] == {
            "https://example.com/x": {"expected_status_code": 404}
        }


class TestRunResult:
    """Test run aggregation."""

    def test_passes_when_all_links_pass(self):
        result = RunResult.from_links(
            "start", {}, CheckerOptions(origin_url="https://example.com"),
            [_link_result(), _link_result()],
        )
        assert result.passed is True
        assert result.link_count == 2
        assert result.failed_link_count == 0
        assert result.end_time

    def test_fails_when_any_link_fails(self):
        result = RunResult.from_links(
            "start", {}, CheckerOptions(origin_url="https://example.com"),
            [_link_result(), _link_result(passed=False)],
        )
        assert result.passed is False
        assert result.passed_link_count == 1
        assert result.failed_link_count == 1

    def test_empty_run_does_not_pass(self):
        result = RunResult.from_links(
            "start", {}, CheckerOptions(origin_url="https://example.com"), []
        )
        assert result.passed is False
        assert result.origin_link_result is None

    def test_generic_result(self):
        result = RunResult.generic("start", "browser exploded", {"k": "v"})
        data = json.loads(result.to_json())
        assert data["passed"] is False
        assert data["link_results"] == []
        assert data["options"] == {}
        assert data["generic_error"] == {
            "error_type": "GenericError",
            "error_message": "browser exploded",
        }

    def test_json_has_run_level_errors(self):
        error = StructuredError(ErrorType.BUCKET_CREATION_ERROR, "no bucket")
        result = RunResult.from_links(
            "start", {}, CheckerOptions(origin_url="https://example.com"),
            [_link_result()], [error],
        )
        data = json.loads(result.to_json())
        assert data["errors"] == [{"error_type": "BucketCreationError", "error_message": "no bucket"}]
        assert data["generic_error"] == {}
