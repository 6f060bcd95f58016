"""Tests for write-side validation."""

import pytest

from splitledger.validation import LedgerValidator
from tests.factories import make_expense, make_group, make_settlement


@pytest.fixture
def validator():
    return LedgerValidator()


@pytest.fixture
def group():
    return make_group("g1", ["u1", "u2", "u3"], admin_ids=("u1",))


def issue_types(result):
    return [issue.issue_type for issue in result.issues]


class TestExpenseValidation:
    """Tests for expense validation."""

    def test_valid_one_to_one_expense(self, validator):
        """A balanced expense passes without issues."""
        result = validator.validate_expense(make_expense("u1", {"u1": "5", "u2": "5"}))
        assert result.is_valid
        assert result.issues == []

    def test_valid_group_expense(self, validator, group):
        """Group expenses between members pass."""
        expense = make_expense("u2", {"u1": "5", "u3": "5"}, group_id="g1")
        assert validator.validate_expense(expense, group).is_valid

    def test_sum_mismatch(self, validator):
        """Splits must add up exactly to the total."""
        expense = make_expense("u1", {"u1": "5", "u2": "5"}, amount="10.01")
        result = validator.validate_expense(expense)
        assert not result.is_valid
        assert "sum_mismatch" in issue_types(result)

    def test_zero_amount(self, validator):
        """Zero totals are rejected."""
        expense = make_expense("u1", {"u2": "0"})
        result = validator.validate_expense(expense)
        assert "invalid_value" in issue_types(result)

    def test_missing_splits(self, validator):
        """An expense needs at least one split."""
        expense = make_expense("u1", {}, amount="10")
        result = validator.validate_expense(expense)
        assert "missing" in issue_types(result)

    def test_duplicate_participant(self, validator):
        """A user may appear in the splits only once."""
        expense = make_expense("u1", {"u2": "5"})
        expense.splits.append(expense.splits[0].model_copy())
        expense.amount = expense.amount * 2
        result = validator.validate_expense(expense)
        assert issue_types(result) == ["duplicate_participant"]

    def test_payer_only_is_a_warning(self, validator):
        """An expense nobody owes on is allowed but flagged."""
        result = validator.validate_expense(make_expense("u1", {"u1": "9"}))
        assert result.is_valid
        assert issue_types(result) == ["no_debt"]
        assert result.issues[0].severity == "warning"

    def test_non_member_participant(self, validator, group):
        """Group expenses may only involve members."""
        expense = make_expense("u1", {"u2": "5", "u9": "5"}, group_id="g1")
        result = validator.validate_expense(expense, group)
        assert issue_types(result) == ["not_a_member"]
        assert "u9" in result.issues[0].message

    def test_non_member_payer(self, validator, group):
        """The payer of a group expense must be a member."""
        expense = make_expense("u9", {"u2": "5"}, group_id="g1")
        result = validator.validate_expense(expense, group)
        assert result.error_count == 1
        assert result.issues[0].field == "paid_by_user_id"

    def test_group_missing(self, validator):
        """Group expenses need their group."""
        expense = make_expense("u1", {"u2": "5"}, group_id="g1")
        result = validator.validate_expense(expense, None)
        assert issue_types(result) == ["not_found"]


class TestSettlementValidation:
    """Tests for settlement validation."""

    def test_valid_settlement(self, validator, group):
        """Members settling up pass."""
        settlement = make_settlement("u2", "u1", "10", group_id="g1")
        assert validator.validate_settlement(settlement, group).is_valid

    def test_self_settlement(self, validator):
        """Nobody settles with themselves."""
        result = validator.validate_settlement(make_settlement("u1", "u1", "10"))
        assert issue_types(result) == ["self_settlement"]

    def test_zero_amount(self, validator):
        """Settlements must move money."""
        result = validator.validate_settlement(make_settlement("u1", "u2", "0"))
        assert issue_types(result) == ["invalid_value"]

    def test_non_member(self, validator, group):
        """Both parties must be members of the group."""
        settlement = make_settlement("u9", "u1", "10", group_id="g1")
        result = validator.validate_settlement(settlement, group)
        assert [i.field for i in result.issues] == ["paid_by_user_id"]
