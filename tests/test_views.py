"""Tests for derived ledger views: filters, running balance, grouping."""

import copy
from datetime import date
from decimal import Decimal

import pytest

from cashflow.ledger.views import (
    apply_filters,
    compute_ledger_view,
    group_by_date,
    matches_filters,
    resolve_locale,
    running_balances,
    sort_chronologically,
)
from cashflow.models import SearchFilters, TransactionType

from conftest import make_transaction


class TestRunningBalance:
    """Tests for balance computation."""

    def test_three_transaction_example(self, sample_transactions):
        """Test totals and balances for income 100, expense 40, income 10."""
        view = compute_ledger_view(sample_transactions)
        assert view.summary.total_income == Decimal("110")
        assert view.summary.total_expense == Decimal("40")
        assert view.summary.net_balance == Decimal("70")
        assert view.balances == [Decimal("100"), Decimal("60"), Decimal("70")]

    def test_balance_is_prefix_sum(self, sample_transactions):
        """Test that every balance equals the sum of signed amounts so far."""
        entries = running_balances(sort_chronologically(sample_transactions))
        total = Decimal("0")
        for entry in entries:
            total += entry.transaction.signed_amount
            assert entry.balance == total

    def test_final_balance_matches_totals(self, sample_transactions):
        """Test final balance equals income minus expense."""
        view = compute_ledger_view(sample_transactions)
        assert view.balances[-1] == view.summary.total_income - view.summary.total_expense

    def test_balance_follows_date_not_insertion_order(self):
        """Test that out-of-order entry is sorted before the walk."""
        later = make_transaction("expense", "30", date(2024, 3, 2))
        earlier = make_transaction("income", "50", date(2024, 3, 1))
        view = compute_ledger_view([later, earlier])
        assert [e.transaction.id for e in view.chronological] == [earlier.id, later.id]
        assert view.balances == [Decimal("50"), Decimal("20")]

    def test_same_day_keeps_list_order(self):
        """Test that the sort is stable for ties."""
        first = make_transaction("income", "1", date(2024, 5, 5), "first")
        second = make_transaction("income", "2", date(2024, 5, 5), "second")
        third = make_transaction("expense", "3", date(2024, 5, 5), "third")
        ordered = sort_chronologically([first, second, third])
        assert [tx.description for tx in ordered] == ["first", "second", "third"]

    def test_empty_input(self):
        """Test that no transactions means no groups and zero totals."""
        view = compute_ledger_view([])
        assert view.groups == ()
        assert view.summary.total_income == Decimal("0")
        assert view.summary.net_balance == Decimal("0")
        assert view.is_empty


class TestGrouping:
    """Tests for date grouping."""

    def test_groups_newest_first(self, sample_transactions):
        """Test that display groups run from newest to oldest."""
        view = compute_ledger_view(sample_transactions, locale="en_US")
        assert [g.date for g in view.groups] == [
            date(2024, 1, 3), date(2024, 1, 2), date(2024, 1, 1),
        ]

    def test_group_label_is_long_date(self, sample_transactions):
        """Test the label has year, full month name and day."""
        view = compute_ledger_view(sample_transactions, locale="en_US")
        assert view.groups[-1].label == "January 1, 2024"

    def test_same_day_shares_group(self):
        """Test that entries on one date land in one group."""
        txs = [
            make_transaction("income", "1", date(2024, 2, 1)),
            make_transaction("income", "2", date(2024, 2, 1)),
            make_transaction("income", "3", date(2024, 2, 2)),
        ]
        view = compute_ledger_view(txs)
        assert len(view.groups) == 2
        assert len(view.groups[1].entries) == 2

    def test_reversal_keeps_balances(self, sample_transactions):
        """Test that display order does not change any balance."""
        view = compute_ledger_view(sample_transactions)
        displayed = {e.transaction.id: e.balance for g in view.groups for e in g.entries}
        computed = {e.transaction.id: e.balance for e in view.chronological}
        assert displayed == computed

    def test_group_by_date_first_seen_order(self, sample_transactions):
        """Test that groups follow the order of the given entries."""
        entries = running_balances(sample_transactions)
        groups = group_by_date(entries, "en_US")
        assert [g.date for g in groups] == [tx.date for tx in sample_transactions]

    def test_unknown_locale_falls_back(self):
        """Test that a bad locale id does not break grouping."""
        assert str(resolve_locale("zz_ZZ")) == "en_US"
        assert str(resolve_locale("en-GB")) == "en_GB"
        assert str(resolve_locale(None)) == "en_US"


class TestFilters:
    """Tests for filter application."""

    def test_empty_filter_passes_everything(self, sample_transactions):
        """Test that no filter and an empty filter keep every transaction."""
        assert apply_filters(sample_transactions, None) == sample_transactions
        assert apply_filters(sample_transactions, SearchFilters()) == sample_transactions

    def test_text_is_case_insensitive_substring(self, sample_transactions):
        """Test the description match."""
        result = apply_filters(sample_transactions, SearchFilters(text="COFFEE"))
        assert [tx.description for tx in result] == ["Office coffee"]

    def test_type_filter(self, sample_transactions):
        """Test filtering by direction."""
        result = apply_filters(sample_transactions, SearchFilters(type=TransactionType.INCOME))
        assert len(result) == 2
        assert all(tx.is_income for tx in result)

    def test_amount_bounds_are_inclusive(self, sample_transactions):
        """Test min and max amount."""
        result = apply_filters(
            sample_transactions,
            SearchFilters(min_amount=Decimal("10"), max_amount=Decimal("40")),
        )
        assert sorted(tx.amount for tx in result) == [Decimal("10"), Decimal("40")]

    def test_zero_minimum_is_applied(self):
        """Test that a zero bound is still a bound."""
        tx = make_transaction("income", "0", date(2024, 1, 1))
        assert matches_filters(tx, SearchFilters(min_amount=Decimal("0")))
        assert not matches_filters(tx, SearchFilters(min_amount=Decimal("0.01")))

    def test_date_bounds_cover_whole_days(self, sample_transactions):
        """Test that start and end dates include their own day."""
        result = apply_filters(
            sample_transactions,
            SearchFilters(start_date=date(2024, 1, 2), end_date=date(2024, 1, 2)),
        )
        assert [tx.date for tx in result] == [date(2024, 1, 2)]

    def test_open_ended_date_range(self, sample_transactions):
        """Test a start date without an end date."""
        result = apply_filters(sample_transactions, SearchFilters(start_date=date(2024, 1, 2)))
        assert len(result) == 2

    def test_filters_are_conjunctive(self, sample_transactions):
        """Test that every present field must match."""
        filters = SearchFilters(type=TransactionType.INCOME, text="coffee")
        assert apply_filters(sample_transactions, filters) == []

    def test_totals_cover_filtered_set(self, sample_transactions):
        """Test that totals and counts reflect the filter."""
        view = compute_ledger_view(sample_transactions, SearchFilters(type=TransactionType.EXPENSE))
        assert view.summary.total_income == Decimal("0")
        assert view.summary.total_expense == Decimal("40")
        assert view.filtered_count == 1
        assert view.total_count == 3


class TestPurity:
    """Tests that views never change their inputs."""

    def test_input_not_mutated(self, sample_transactions):
        """Test that computing a view leaves the list as it was."""
        reversed_input = list(reversed(sample_transactions))
        snapshot = copy.copy(reversed_input)
        compute_ledger_view(reversed_input, SearchFilters(text="o"))
        assert reversed_input == snapshot

    def test_repeatable(self, sample_transactions):
        """Test that repeated calls give equal results."""
        assert compute_ledger_view(sample_transactions) == compute_ledger_view(sample_transactions)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
