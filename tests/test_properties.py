"""Property-based tests for the amortization and prepayment engine using Hypothesis.

Invariants that must hold for every principal >= 0, annual rate >= 0 and term >= 1 year:
- Schedules have years * 12 rows and end at exactly zero balance
- Principal portions add back up to the loan amount
- Equal-principal schedules repay a constant principal portion
- Combining tranches adds their interest
- Prepayment snapshots always cover the full term
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from mortgage_planner.calculator import LoanTranche, RepaymentMethod, amortize, combine
from mortgage_planner.prepayment import simulate_prepayment


principals = st.one_of(st.just(0.0), st.floats(min_value=1.0, max_value=1e8))
rates = st.one_of(st.just(0.0), st.floats(min_value=1e-12, max_value=30.0))
tiny_rates = st.floats(min_value=0.0, max_value=1e-10)
terms = st.integers(min_value=1, max_value=30)
methods = st.sampled_from(list(RepaymentMethod))


@st.composite
def tranche(draw, max_principal=5e6):
    principal = draw(st.one_of(st.just(0.0), st.floats(min_value=1.0, max_value=max_principal)))
    return LoanTranche(principal, draw(rates))


class TestAmortizeProperties:
    @given(principal=principals, rate=rates, years=terms, method=methods)
    @settings(max_examples=60, deadline=None)
    def test_schedule_ends_at_zero(self, principal, rate, years, method):
        result = amortize(principal, rate, years, method)
        assert result.months == years * 12
        assert result.schedule[-1].month_index == years * 12
        assert result.schedule[-1].balance == 0.0

    @given(principal=principals, rate=rates, years=terms, method=methods)
    @settings(max_examples=60, deadline=None)
    def test_principal_portions_sum_to_loan(self, principal, rate, years, method):
        result = amortize(principal, rate, years, method)
        assert sum(row.principal for row in result.schedule) == pytest.approx(principal, rel=1e-6, abs=1e-6)

    @given(principal=principals, rate=rates, years=terms, method=methods)
    @settings(max_examples=60, deadline=None)
    def test_balance_never_increases(self, principal, rate, years, method):
        schedule = amortize(principal, rate, years, method).schedule
        for prev, cur in zip(schedule, schedule[1:]):
            assert 0 <= cur.balance <= prev.balance

    @given(principal=principals, rate=tiny_rates, years=terms, method=methods)
    @settings(max_examples=60, deadline=None)
    def test_tiny_rates_behave_like_zero(self, principal, rate, years, method):
        result = amortize(principal, rate, years, method)
        assert result.monthly_payment == pytest.approx(principal / (years * 12), rel=1e-6, abs=1e-9)
        assert result.schedule[-1].balance == 0.0

    @given(principal=principals, rate=rates, years=terms)
    @settings(max_examples=60, deadline=None)
    def test_equal_principal_portion_constant(self, principal, rate, years):
        schedule = amortize(principal, rate, years, RepaymentMethod.EQUAL_PRINCIPAL).schedule
        expected = principal / (years * 12)
        assert all(row.principal == expected for row in schedule)

    @given(
        principal=st.floats(min_value=1.0, max_value=1e8),
        rate=st.floats(min_value=0.01, max_value=30.0),
        years=terms,
    )
    @settings(max_examples=60, deadline=None)
    def test_equal_principal_payment_strictly_decreasing(self, principal, rate, years):
        schedule = amortize(principal, rate, years, RepaymentMethod.EQUAL_PRINCIPAL).schedule
        for prev, cur in zip(schedule, schedule[1:]):
            assert cur.payment < prev.payment

    @given(principal=principals, years=terms, method=methods)
    @settings(max_examples=40, deadline=None)
    def test_zero_rate_payment_constant(self, principal, years, method):
        schedule = amortize(principal, 0.0, years, method).schedule
        assert len({row.payment for row in schedule}) == 1
        assert all(row.interest == 0 for row in schedule)

    @given(rate=rates, years=terms, method=methods)
    @settings(max_examples=40, deadline=None)
    def test_zero_principal_all_zero(self, rate, years, method):
        result = amortize(0.0, rate, years, method)
        assert result.months == years * 12
        assert result.total_interest == 0
        assert all(row.payment == 0 and row.balance == 0 for row in result.schedule)


class TestCombineProperties:
    @given(first=tranche(max_principal=1e8), second=tranche(max_principal=1e8), years=terms, method=methods)
    @settings(max_examples=60, deadline=None)
    def test_interest_is_additive(self, first, second, years, method):
        a = amortize(first.principal, first.annual_rate, years, method)
        b = amortize(second.principal, second.annual_rate, years, method)
        merged = combine(a, b)
        assert merged.months == years * 12
        assert merged.total_interest == pytest.approx(a.total_interest + b.total_interest)
        assert merged.loan_amount == first.principal + second.principal
        assert merged.schedule[-1].balance == 0.0


class TestPrepaymentProperties:
    @given(
        commercial=tranche(),
        provident=tranche(),
        years=terms,
        method=methods,
        amount=st.floats(min_value=0.01, max_value=1e7),
    )
    @settings(max_examples=50, deadline=None)
    def test_snapshots_cover_full_term(self, commercial, provident, years, method, amount):
        result = simulate_prepayment(commercial, provident, years, method, amount)
        assert [row.year for row in result.schedule] == list(range(1, years + 1))
        for prev, cur in zip(result.schedule, result.schedule[1:]):
            assert 0 <= cur.remaining_principal <= prev.remaining_principal
        assert result.schedule[-1].next_month_payment == 0

    @given(
        commercial=tranche(),
        provident=tranche(),
        years=terms,
        method=methods,
        amount=st.floats(min_value=0.01, max_value=1e7),
    )
    @settings(max_examples=50, deadline=None)
    def test_prepaying_never_costs_interest(self, commercial, provident, years, method, amount):
        result = simulate_prepayment(commercial, provident, years, method, amount)
        tolerance = 1e-6 * max(1.0, commercial.principal + provident.principal)
        assert result.total_interest_saved >= -tolerance

    @given(commercial=tranche(), provident=tranche(), years=terms, method=methods)
    @settings(max_examples=50, deadline=None)
    def test_lump_sum_above_balance_pays_off_first_year(self, commercial, provident, years, method):
        amount = commercial.principal + provident.principal + 1.0
        result = simulate_prepayment(commercial, provident, years, method, amount)
        assert len(result.schedule) == years
        assert all(row.remaining_principal == 0 and row.next_month_payment == 0 for row in result.schedule)
