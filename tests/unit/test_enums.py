import pytest
from models.base import Category, FlowStatus, LogLevel, TERMINAL_STATUSES


def test_enum_values_are_stable():
    assert [int(s) for s in FlowStatus] == [0, 1, 2, 3]
    assert [int(l) for l in LogLevel] == [0, 1, 2, 3]
    assert [int(c) for c in Category] == [0, 1, 2, 3]


def test_parse_accepts_member_int_and_name():
    assert FlowStatus.parse(FlowStatus.FAILED) is FlowStatus.FAILED
    assert FlowStatus.parse(1) is FlowStatus.COMPLETED
    assert Category.parse("services") is Category.SERVICES
    assert LogLevel.parse("WARN") is LogLevel.WARN


@pytest.mark.parametrize("value", [7, "fatal", "", None, True, 1.5])
def test_parse_rejects_unknown_values(value):
    with pytest.raises(ValueError):
        LogLevel.parse(value)


def test_label_is_lowercase_name():
    assert FlowStatus.SKIPPED.label == "skipped"
    assert Category.labels() == ["jobs", "services", "api", "other"]


def test_log_levels_are_ordered():
    assert LogLevel.DEBUG < LogLevel.INFO < LogLevel.WARN < LogLevel.ERROR


def test_running_is_not_terminal():
    assert FlowStatus.RUNNING not in TERMINAL_STATUSES
    assert set(TERMINAL_STATUSES) == {FlowStatus.COMPLETED, FlowStatus.FAILED, FlowStatus.SKIPPED}
