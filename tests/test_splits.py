"""Tests for split calculation and the split-sum invariant."""

from decimal import Decimal

import pytest

from splitledger.exceptions import ValidationError
from splitledger.models import Split
from splitledger.splits import compute_splits, validate_split_sum


def total(splits: list[Split]) -> Decimal:
    return sum((split.amount for split in splits), Decimal("0"))


def amounts(splits: list[Split]) -> dict[str, Decimal]:
    return {split.user_id: split.amount for split in splits}


class TestEqualSplits:
    """Equal splits across the payer and participants."""

    def test_even_division(self):
        """Amount divides evenly, no residual."""
        splits = compute_splits(Decimal("90.00"), "P", ["A", "B"])

        assert amounts(splits) == {
            "P": Decimal("30.00"),
            "A": Decimal("30.00"),
            "B": Decimal("30.00"),
        }

    def test_residual_cent_goes_to_payer(self):
        """100 / 3 leaves one cent, which the payer absorbs."""
        splits = compute_splits(Decimal("100"), "P", ["P", "A", "B"])

        assert amounts(splits) == {
            "P": Decimal("33.34"),
            "A": Decimal("33.33"),
            "B": Decimal("33.33"),
        }
        assert total(splits) == Decimal("100")

    def test_payer_included_when_not_listed(self):
        """The payer always takes part in an equal split."""
        splits = compute_splits(Decimal("10.00"), "P", ["A"])

        assert [split.user_id for split in splits] == ["P", "A"]
        assert amounts(splits) == {"P": Decimal("5.00"), "A": Decimal("5.00")}

    def test_payer_listed_first_regardless_of_position(self):
        """Payer listed mid-way is not counted twice."""
        splits = compute_splits(Decimal("9.00"), "P", ["A", "P", "B"])

        assert [split.user_id for split in splits] == ["P", "A", "B"]

    @pytest.mark.parametrize(
        "amount,participants",
        [
            ("0.01", ["A", "B"]),
            ("0.02", ["A", "B", "C", "D"]),
            ("1.00", ["A", "B", "C", "D", "E", "F"]),
            ("99.99", ["A", "B", "C", "D", "E", "F", "G"]),
            ("1234567.89", ["A", "B"]),
        ],
    )
    def test_sum_is_exact(self, amount, participants):
        """Splits always add up to the amount with zero epsilon."""
        splits = compute_splits(Decimal(amount), "P", participants)

        assert total(splits) == Decimal(amount)
        assert all(split.amount >= 0 for split in splits)

    def test_residual_never_exceeds_participant_count(self):
        """The payer's extra is less than one cent per participant."""
        splits = compute_splits(Decimal("1.00"), "P", ["A", "B", "C", "D", "E", "F"])
        shares = amounts(splits)

        assert shares["A"] == Decimal("0.14")
        assert shares["P"] - shares["A"] < Decimal("0.07")

    def test_accepts_int_and_string_amounts(self):
        """Amounts may be ints or numeric strings."""
        assert total(compute_splits(50, "P", ["A"])) == Decimal("50")
        assert total(compute_splits("50.50", "P", ["A"])) == Decimal("50.50")


class TestExplicitSplits:
    """Unequal, percentage and shares splits."""

    def test_unequal_exact(self):
        """Explicit amounts that add up are kept as given."""
        splits = compute_splits(
            Decimal("100"),
            "P",
            ["P", "A", "B"],
            kind="unequal",
            explicit_shares={"P": "50", "A": "30", "B": "20"},
        )

        assert amounts(splits) == {
            "P": Decimal("50.00"),
            "A": Decimal("30.00"),
            "B": Decimal("20.00"),
        }

    def test_unequal_within_epsilon_adjusts_payer(self):
        """A one-cent shortfall is tolerated and absorbed by the payer."""
        splits = compute_splits(
            Decimal("100"),
            "P",
            ["P", "A"],
            kind="unequal",
            explicit_shares={"P": "49.99", "A": "50.00"},
        )

        assert amounts(splits)["P"] == Decimal("50.00")
        assert total(splits) == Decimal("100")

    def test_unequal_without_payer_adjusts_largest(self):
        """When the payer doesn't participate, the largest line absorbs it."""
        splits = compute_splits(
            Decimal("100"),
            "P",
            ["A", "B"],
            kind="unequal",
            explicit_shares={"A": "60.00", "B": "39.99"},
        )

        assert amounts(splits) == {"A": Decimal("60.01"), "B": Decimal("39.99")}

    def test_unequal_mismatch_rejected(self):
        """Amounts off by more than a cent fail."""
        with pytest.raises(ValidationError, match="must sum to expense amount"):
            compute_splits(
                Decimal("100"),
                "P",
                ["P", "A"],
                kind="unequal",
                explicit_shares={"P": "50", "A": "49"},
            )

    def test_unequal_negative_rejected(self):
        """Negative amounts fail."""
        with pytest.raises(ValidationError, match="negative"):
            compute_splits(
                Decimal("10"),
                "P",
                ["P", "A"],
                kind="unequal",
                explicit_shares={"P": "15", "A": "-5"},
            )

    def test_percentage(self):
        """Percentages convert to amounts summing exactly."""
        splits = compute_splits(
            Decimal("200"),
            "P",
            ["P", "A", "B"],
            kind="percentage",
            explicit_shares={"P": "50", "A": "25", "B": "25"},
        )

        assert amounts(splits) == {
            "P": Decimal("100.00"),
            "A": Decimal("50.00"),
            "B": Decimal("50.00"),
        }
        assert splits[1].percentage == Decimal("25")

    def test_percentage_thirds(self):
        """33.33% x 3 is within epsilon; residual lands on the payer."""
        splits = compute_splits(
            Decimal("100"),
            "P",
            ["P", "A", "B"],
            kind="percentage",
            explicit_shares={"P": "33.33", "A": "33.33", "B": "33.33"},
        )

        assert amounts(splits) == {
            "P": Decimal("33.34"),
            "A": Decimal("33.33"),
            "B": Decimal("33.33"),
        }

    def test_percentage_not_100_rejected(self):
        """Percentages must sum to 100."""
        with pytest.raises(ValidationError, match="percentages must sum to 100"):
            compute_splits(
                Decimal("100"),
                "P",
                ["P", "A"],
                kind="percentage",
                explicit_shares={"P": "50", "A": "40"},
            )

    def test_shares(self):
        """Share counts divide the amount proportionally."""
        splits = compute_splits(
            Decimal("100"),
            "P",
            ["P", "A", "B"],
            kind="shares",
            explicit_shares={"P": 2, "A": 1, "B": 1},
        )

        assert amounts(splits) == {
            "P": Decimal("50.00"),
            "A": Decimal("25.00"),
            "B": Decimal("25.00"),
        }
        assert splits[0].shares == 2

    def test_shares_residual_exact(self):
        """Shares that don't divide evenly still sum exactly."""
        splits = compute_splits(
            Decimal("10"),
            "P",
            ["A", "B", "C"],
            kind="shares",
            explicit_shares={"A": 1, "B": 1, "C": 1},
        )

        assert total(splits) == Decimal("10")
        assert amounts(splits)["A"] == Decimal("3.34")

    @pytest.mark.parametrize("bad", [0, -1, 1.5, "2", True])
    def test_shares_must_be_positive_integers(self, bad):
        """Zero, negative, fractional, string and bool shares fail."""
        with pytest.raises(ValidationError, match="positive integers"):
            compute_splits(
                Decimal("10"),
                "P",
                ["P", "A"],
                kind="shares",
                explicit_shares={"P": 1, "A": bad},
            )

    def test_explicit_values_must_match_participants(self):
        """Missing or extra explicit values fail."""
        with pytest.raises(ValidationError, match="cover exactly the participants"):
            compute_splits(
                Decimal("10"),
                "P",
                ["P", "A"],
                kind="unequal",
                explicit_shares={"P": "10"},
            )

    def test_explicit_kind_requires_values(self):
        """Explicit kinds without values fail."""
        with pytest.raises(ValidationError, match="requires explicit values"):
            compute_splits(Decimal("10"), "P", ["P", "A"], kind="percentage")


class TestSplitValidation:
    """Inputs the calculator rejects."""

    @pytest.mark.parametrize("amount", ["0", "-5", 0, -1])
    def test_non_positive_amount(self, amount):
        """Amount must be greater than zero."""
        with pytest.raises(ValidationError, match="greater than 0"):
            compute_splits(amount, "P", ["A"])

    def test_sub_cent_amount(self):
        """More than two decimal places is rejected, not rounded."""
        with pytest.raises(ValidationError, match="2 decimal places"):
            compute_splits(Decimal("10.005"), "P", ["A"])

    def test_float_amount_rejected(self):
        """Floats are not accepted for money."""
        with pytest.raises(ValidationError):
            compute_splits(10.5, "P", ["A"])

    def test_empty_participants(self):
        """At least one participant is required."""
        with pytest.raises(ValidationError, match="at least one participant"):
            compute_splits(Decimal("10"), "P", [])

    def test_duplicate_participant(self):
        """Participant ids must be unique."""
        with pytest.raises(ValidationError, match="duplicate"):
            compute_splits(Decimal("10"), "P", ["A", "A"])

    def test_unknown_kind(self):
        """Unknown split kinds fail."""
        with pytest.raises(ValidationError, match="unknown split kind"):
            compute_splits(Decimal("10"), "P", ["A"], kind="random")

    def test_error_names_field(self):
        """Validation errors carry the offending field."""
        with pytest.raises(ValidationError) as exc_info:
            compute_splits(Decimal("0"), "P", ["A"])

        assert exc_info.value.field == "amount"


class TestValidateSplitSum:
    """Invariant check applied to caller-provided splits."""

    def test_valid(self):
        """Splits within a cent of the amount pass."""
        validate_split_sum(
            Decimal("10.00"),
            [Split(user_id="P", amount=Decimal("5.00")), Split(user_id="A", amount=Decimal("4.99"))],
        )

    def test_mismatch(self):
        """Splits off by more than a cent fail."""
        with pytest.raises(ValidationError, match="must sum to expense amount"):
            validate_split_sum(
                Decimal("10.00"),
                [Split(user_id="P", amount=Decimal("5")), Split(user_id="A", amount=Decimal("4"))],
            )

    def test_duplicates(self):
        """Duplicate users fail."""
        with pytest.raises(ValidationError, match="duplicate"):
            validate_split_sum(
                Decimal("10"),
                [Split(user_id="A", amount=Decimal("5")), Split(user_id="A", amount=Decimal("5"))],
            )

    def test_empty(self):
        """No splits fail."""
        with pytest.raises(ValidationError, match="at least one split"):
            validate_split_sum(Decimal("10"), [])
