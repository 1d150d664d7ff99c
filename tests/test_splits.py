from decimal import Decimal

import pytest

from src.utils.splits import (
    ParticipantInput,
    Share,
    SplitErrorCode,
    build_shares,
    compute_equal_split,
    compute_exact_split,
    compute_percentage_split,
    owed_shares,
    payer_retained_share,
    split_evenly,
    validate,
)


def amounts(outcome):
    return [s.amount for s in outcome.shares]


# ---------- равные доли ----------

def test_equal_split_divides_evenly():
    outcome = compute_equal_split(Decimal("30"), [1, 2, 3])
    assert outcome.ok
    assert amounts(outcome) == [Decimal("10.00")] * 3


def test_equal_split_gives_remainder_cents_to_first_shares():
    outcome = compute_equal_split(Decimal("100"), [1, 2, 3])
    assert amounts(outcome) == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
    assert sum(amounts(outcome)) == Decimal("100.00")


@pytest.mark.parametrize("total,count", [("0.01", 3), ("10", 7), ("999.99", 13), ("1", 1)])
def test_split_evenly_sums_exactly_and_differs_by_at_most_a_cent(total, count):
    parts = split_evenly(Decimal(total), count)
    assert len(parts) == count
    assert sum(parts) == Decimal(total)
    assert max(parts) - min(parts) <= Decimal("0.01")


def test_equal_split_rejects_non_positive_amount():
    outcome = compute_equal_split(Decimal("0"), [1, 2])
    assert not outcome.ok
    assert outcome.error.code is SplitErrorCode.INVALID_AMOUNT


def test_equal_split_requires_participants():
    outcome = compute_equal_split(Decimal("10"), [])
    assert outcome.error.code is SplitErrorCode.NO_PARTICIPANTS


# ---------- проценты ----------

def test_percentage_split_amounts():
    outcome = compute_percentage_split(Decimal("200"), {1: Decimal("25"), 2: Decimal("75")})
    assert outcome.ok
    assert amounts(outcome) == [Decimal("50.00"), Decimal("150.00")]
    assert [s.percentage for s in outcome.shares] == [Decimal("25"), Decimal("75")]


def test_percentage_split_thirds_sum_to_total():
    outcome = compute_percentage_split(
        Decimal("100"),
        {1: Decimal("33.33"), 2: Decimal("33.33"), 3: Decimal("33.34")},
    )
    assert outcome.ok
    assert sum(amounts(outcome)) == Decimal("100.00")


def test_percentage_mismatch_reports_expected_and_actual():
    outcome = compute_percentage_split(Decimal("100"), {1: Decimal("60"), 2: Decimal("30")})
    assert not outcome.ok
    assert outcome.error.code is SplitErrorCode.PERCENTAGE_SUM_MISMATCH
    assert outcome.error.expected == Decimal("100")
    assert outcome.error.actual == Decimal("90")


def test_percentage_within_tolerance_is_accepted():
    outcome = compute_percentage_split(Decimal("10"), {1: Decimal("50.005"), 2: Decimal("50")})
    assert outcome.ok
    assert sum(amounts(outcome)) == Decimal("10.00")


def test_percentage_out_of_range_is_rejected():
    outcome = compute_percentage_split(Decimal("10"), {1: Decimal("120"), 2: Decimal("-20")})
    assert outcome.error.code is SplitErrorCode.PERCENTAGE_SUM_MISMATCH


# ---------- точные суммы ----------

def test_exact_split_returns_amounts_unchanged():
    outcome = compute_exact_split(Decimal("80"), {1: Decimal("30"), 2: Decimal("50")})
    assert outcome.ok
    assert amounts(outcome) == [Decimal("30.00"), Decimal("50.00")]


def test_exact_split_mismatch():
    outcome = compute_exact_split(Decimal("100"), {1: Decimal("30"), 2: Decimal("50")})
    assert outcome.error.code is SplitErrorCode.SPLIT_SUM_MISMATCH
    assert outcome.error.expected == Decimal("100.00")
    assert outcome.error.actual == Decimal("80.00")


def test_exact_split_has_no_epsilon():
    outcome = compute_exact_split(Decimal("10"), {1: Decimal("5"), 2: Decimal("4.99")})
    assert outcome.error.code is SplitErrorCode.SPLIT_SUM_MISMATCH


def test_exact_split_rejects_negative_share():
    outcome = compute_exact_split(Decimal("10"), {1: Decimal("15"), 2: Decimal("-5")})
    assert outcome.error.code is SplitErrorCode.INVALID_AMOUNT


# ---------- validate ----------

def test_validate_accepts_well_formed_equal_shares():
    shares = [Share(1, Decimal("33.34")), Share(2, Decimal("33.33")), Share(3, Decimal("33.33"))]
    assert validate(Decimal("100"), shares, "equal").ok


def test_validate_rejects_uneven_equal_shares():
    shares = [Share(1, Decimal("60")), Share(2, Decimal("40"))]
    outcome = validate(Decimal("100"), shares, "equal")
    assert outcome.error.code is SplitErrorCode.SPLIT_SUM_MISMATCH


def test_validate_rejects_sum_mismatch():
    outcome = validate(Decimal("100"), [Share(1, Decimal("50"))], "exact")
    assert outcome.error.code is SplitErrorCode.SPLIT_SUM_MISMATCH
    assert outcome.error.as_dict() == {
        "code": "split_sum_mismatch",
        "message": outcome.error.message,
        "expected": "100.00",
        "actual": "50.00",
    }


def test_validate_rejects_amount_inconsistent_with_percentage():
    shares = [
        Share(1, Decimal("70"), Decimal("50")),
        Share(2, Decimal("30"), Decimal("50")),
    ]
    outcome = validate(Decimal("100"), shares, "percentage")
    assert outcome.error.code is SplitErrorCode.SPLIT_SUM_MISMATCH


def test_validate_rejects_percentage_sum():
    shares = [Share(1, Decimal("60"), Decimal("60")), Share(2, Decimal("40"), Decimal("30"))]
    outcome = validate(Decimal("100"), shares, "percentage")
    assert outcome.error.code is SplitErrorCode.PERCENTAGE_SUM_MISMATCH


def test_validate_empty_shares():
    assert validate(Decimal("10"), [], "exact").error.code is SplitErrorCode.NO_PARTICIPANTS


# ---------- build_shares ----------

def test_build_shares_equal_includes_payer_first():
    outcome = build_shares(Decimal("100"), 7, "equal", [ParticipantInput(2), ParticipantInput(3)])
    assert [s.user_id for s in outcome.shares] == [7, 2, 3]
    assert payer_retained_share(outcome.shares, 7) == Decimal("33.34")
    assert [s.amount for s in owed_shares(outcome.shares, 7)] == [Decimal("33.33"), Decimal("33.33")]


def test_build_shares_ignores_payer_listed_for_equal():
    outcome = build_shares(Decimal("20"), 7, "equal", [ParticipantInput(7), ParticipantInput(2)])
    assert [(s.user_id, s.amount) for s in outcome.shares] == [(7, Decimal("10.00")), (2, Decimal("10.00"))]


def test_build_shares_requires_someone_besides_payer():
    outcome = build_shares(Decimal("20"), 7, "equal", [ParticipantInput(7)])
    assert outcome.error.code is SplitErrorCode.NO_PARTICIPANTS


def test_build_shares_percentage_with_payer_in_list():
    outcome = build_shares(
        Decimal("50"),
        7,
        "percentage",
        [ParticipantInput(7, percentage=Decimal("40")), ParticipantInput(2, percentage=Decimal("60"))],
    )
    assert outcome.ok
    assert payer_retained_share(outcome.shares, 7) == Decimal("20.00")
    assert owed_shares(outcome.shares, 7)[0].amount == Decimal("30.00")


def test_build_shares_exact_without_payer_leaves_payer_nothing():
    outcome = build_shares(Decimal("50"), 7, "exact", [ParticipantInput(2, amount=Decimal("50"))])
    assert outcome.ok
    assert payer_retained_share(outcome.shares, 7) == Decimal("0.00")


def test_build_shares_unknown_split_type():
    with pytest.raises(ValueError):
        build_shares(Decimal("10"), 1, "weighted", [ParticipantInput(2)])
