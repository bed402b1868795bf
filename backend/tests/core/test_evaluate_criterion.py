"""Tests for evaluate_criterion — operator dispatch, skips, and rule validation."""

import pytest

from investscore.core.domain_types import Operator, SkipReason
from investscore.core.errors import InvalidCriterionError
from investscore.core.evaluate_criterion import (
    evaluate_criterion, has_required_fundamentals, validate_criterion,
)
from investscore.core.scoring_inputs import CriterionRule, make_asset


def _rule(operator, value="0", value2=None, points=10, metric="m", **kw):
    return CriterionRule(
        id=kw.pop("id", "c1"), name=kw.pop("name", "Rule"), metric=metric,
        operator=operator, value=value, value2=value2, points=points, **kw,
    )


def _fundamentals(**values):
    return make_asset("a1", "A1", values).fundamentals


def test_gt_match_awards_points_and_reports_actual_value():
    rule = _rule(Operator.GT, "5.0", metric="dividend_yield")
    entry = evaluate_criterion(rule, _fundamentals(dividend_yield="6.0"))
    assert entry.matched is True
    assert entry.points_awarded == 10
    assert entry.actual_value == "6.0"
    assert entry.skipped_reason is None


@pytest.mark.parametrize("operator,actual,expected", [
    (Operator.GT, "5", False),
    (Operator.GT, "5.0001", True),
    (Operator.GTE, "5", True),
    (Operator.GTE, "4.9999", False),
    (Operator.LT, "5", False),
    (Operator.LT, "4.9999", True),
    (Operator.LTE, "5", True),
    (Operator.LTE, "5.0001", False),
    (Operator.EQ, "5.00", True),
    (Operator.EQ, "5.01", False),
    (Operator.EQUALS, "5", True),
])
def test_comparison_operators_against_threshold_five(operator, actual, expected):
    entry = evaluate_criterion(_rule(operator, "5"), _fundamentals(m=actual))
    assert entry.matched is expected
    assert entry.points_awarded == (10 if expected else 0)


@pytest.mark.parametrize("actual,expected", [
    ("5", True), ("10", True), ("15", True), ("4.99", False), ("15.01", False),
])
def test_between_is_inclusive_on_both_bounds(actual, expected):
    rule = _rule(Operator.BETWEEN, "5", "15")
    assert evaluate_criterion(rule, _fundamentals(m=actual)).matched is expected


def test_eq_on_binary_float_input_is_exact():
    rule = _rule(Operator.EQ, "0.3")
    assert evaluate_criterion(rule, _fundamentals(m=0.3)).matched is True


def test_raw_string_fundamentals_are_parsed():
    rule = _rule(Operator.LT, "20", metric="pe_ratio")
    assert evaluate_criterion(rule, {"pe_ratio": "12.5"}).matched is True


def test_exists_matches_any_present_value_and_ignores_threshold():
    rule = _rule(Operator.EXISTS, value="not-a-number")
    entry = evaluate_criterion(rule, _fundamentals(m="-42"))
    assert entry.matched is True
    assert entry.actual_value == "-42"


def test_missing_fundamental_is_skipped_with_zero_points():
    rule = _rule(Operator.GT, "10", metric="pe_ratio")
    entry = evaluate_criterion(rule, _fundamentals())
    assert entry.matched is False
    assert entry.points_awarded == 0
    assert entry.actual_value is None
    assert entry.skipped_reason == SkipReason.MISSING_FUNDAMENTAL


def test_null_fundamental_counts_as_missing():
    rule = _rule(Operator.EXISTS, metric="pe_ratio")
    entry = evaluate_criterion(rule, _fundamentals(pe_ratio=None))
    assert entry.skipped_reason == SkipReason.MISSING_FUNDAMENTAL


def test_extra_required_fundamental_missing_skips_rule():
    rule = _rule(
        Operator.GT, "1", metric="roe",
        required_fundamentals=frozenset({"roe", "net_margin"}),
    )
    fundamentals = _fundamentals(roe="20")
    assert not has_required_fundamentals(rule, fundamentals)
    assert evaluate_criterion(rule, fundamentals).skipped_reason == SkipReason.MISSING_FUNDAMENTAL


def test_empty_required_set_evaluates_absent_metric_as_unmatched():
    rule = _rule(Operator.GT, "1", metric="roe", required_fundamentals=frozenset())
    entry = evaluate_criterion(rule, _fundamentals())
    assert entry.skipped_reason is None
    assert entry.matched is False
    assert entry.actual_value is None


def test_negative_points_are_awarded_verbatim():
    rule = _rule(Operator.GT, "3", points=-5, metric="debt_to_equity")
    entry = evaluate_criterion(rule, _fundamentals(debt_to_equity="4.5"))
    assert entry.points_awarded == -5


def test_breakdown_entry_carries_criterion_identity():
    rule = _rule(Operator.GT, "1", id="c-roe", name="Return on equity", metric="roe")
    entry = evaluate_criterion(rule, _fundamentals(roe="2"))
    assert entry.criterion_id == "c-roe"
    assert entry.criterion_name == "Return on equity"
    assert entry.to_dict()["skipped_reason"] is None


# ─── Validation ──────────────────────────────────────────────────

def test_validate_returns_parsed_thresholds():
    thresholds = validate_criterion(_rule(Operator.BETWEEN, "5", "15.5"))
    assert str(thresholds.lower) == "5"
    assert str(thresholds.upper) == "15.5"


def test_unknown_operator_is_a_configuration_error():
    with pytest.raises(InvalidCriterionError) as exc_info:
        validate_criterion(_rule("approx", "5"))
    assert exc_info.value.code == "INVALID_CRITERION"
    assert exc_info.value.context.criterion_id == "c1"


def test_between_without_upper_bound_is_rejected():
    with pytest.raises(InvalidCriterionError, match="value2"):
        validate_criterion(_rule(Operator.BETWEEN, "5"))


@pytest.mark.parametrize("value", ["", "abc", "NaN"])
def test_unparseable_threshold_is_rejected(value):
    with pytest.raises(InvalidCriterionError):
        validate_criterion(_rule(Operator.GT, value))


@pytest.mark.parametrize("points", [1.5, "10", True, None])
def test_non_integer_points_are_rejected(points):
    with pytest.raises(InvalidCriterionError, match="points"):
        validate_criterion(_rule(Operator.GT, "1", points=points))


def test_exists_does_not_parse_threshold():
    assert validate_criterion(_rule(Operator.EXISTS, value="garbage")).lower is None
