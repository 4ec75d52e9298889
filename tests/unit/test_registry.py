"""Unit tests for keyrotation/rotation/registry.py — process-wide accessor."""

from __future__ import annotations

import pytest

from keyrotation.rotation.registry import (
    RotationOutcome,
    clear_global,
    consume_rotation_flag,
    current_key_info,
    get_global,
    has_multiple,
    initialize_global,
    report_global_error,
    rotate_global,
)
from keyrotation.rotation.rotator import EmptyInputError, RotationStrategy

KEYS = "AIzaSyTest123456789;AIzaSyOther87654321;AIzaSyThird11111111"


class TestInitializeGlobal:
    def test_unset_by_default(self) -> None:
        assert get_global() is None
        assert has_multiple() is False

    def test_initialize_returns_and_stores_instance(self) -> None:
        rotator = initialize_global(KEYS)
        assert get_global() is rotator
        assert rotator.get_total_count() == 3

    def test_reinitialize_replaces_wholesale(self) -> None:
        first = initialize_global(KEYS)
        first.report_error("boom")
        second = initialize_global("AIzaSyFresh00000001;AIzaSyFresh00000002")
        assert get_global() is second
        assert second is not first
        assert all(c.error_count == 0 for c in second.get_all_status())

    def test_config_passed_through(self) -> None:
        rotator = initialize_global(KEYS, {"strategy": "least-errors"})
        assert rotator.config.strategy is RotationStrategy.LEAST_ERRORS

    def test_failed_initialize_keeps_previous(self) -> None:
        previous = initialize_global(KEYS)
        with pytest.raises(EmptyInputError):
            initialize_global("   ")
        assert get_global() is previous

    def test_clear_global(self) -> None:
        initialize_global(KEYS)
        clear_global()
        assert get_global() is None


class TestHasMultiple:
    def test_single_key(self) -> None:
        initialize_global("AIzaSyTest123456789")
        assert has_multiple() is False

    def test_multiple_keys(self) -> None:
        initialize_global(KEYS)
        assert has_multiple() is True


class TestRotateGlobal:
    def test_no_instance(self) -> None:
        assert rotate_global() == RotationOutcome(rotated=False)
        assert consume_rotation_flag() is False

    def test_single_key_does_not_rotate(self) -> None:
        initialize_global("AIzaSyTest123456789")
        assert rotate_global().rotated is False

    def test_rotates_and_reports_info(self) -> None:
        initialize_global(KEYS)
        outcome = rotate_global()
        assert outcome.rotated is True
        assert outcome.current_key == "AIzaSyOther87654321"
        assert outcome.key_info == "API 2/3 (AIzaSyOt*******4321)"

    def test_rotation_flag_consumed_once(self) -> None:
        initialize_global(KEYS)
        rotate_global()
        assert consume_rotation_flag() is True
        assert consume_rotation_flag() is False

    def test_exhausted_returns_not_rotated(self) -> None:
        rotator = initialize_global("AIzaSyTest123456789;AIzaSyOther87654321", {"max_errors_per_key": 1})
        rotator.report_error("dead")
        rotator.rotate()
        rotator.report_error("dead")
        outcome = rotate_global()
        assert outcome.rotated is False
        assert consume_rotation_flag() is False


class TestReportAndInfo:
    def test_report_without_instance_is_noop(self) -> None:
        report_global_error("nothing to report to")  # must not raise

    def test_report_forwards_to_instance(self) -> None:
        rotator = initialize_global(KEYS)
        report_global_error("HTTP 429")
        status = rotator.get_all_status()[0]
        assert status.error_count == 1
        assert status.last_error == "HTTP 429"

    def test_current_key_info(self) -> None:
        assert current_key_info() is None
        initialize_global(KEYS)
        assert current_key_info() == "API 1/3 (AIzaSyTe*******6789)"

    def test_current_key_info_none_when_exhausted(self) -> None:
        rotator = initialize_global("AIzaSyTest123456789", {"max_errors_per_key": 1})
        rotator.report_error("dead")
        assert current_key_info() is None
