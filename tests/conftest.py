"""Shared fixtures.

Reference loan: 1,000,000 yuan, 4.9% annual rate, 30 years.
"""

import pytest

from mortgage_planner.calculator import LoanTranche


@pytest.fixture
def commercial_loan() -> LoanTranche:
    return LoanTranche(principal=1_000_000, annual_rate=4.9)


@pytest.fixture
def no_provident() -> LoanTranche:
    return LoanTranche(principal=0, annual_rate=3.1)


@pytest.fixture
def combined_loans():
    return LoanTranche(principal=600_000, annual_rate=4.9), LoanTranche(principal=400_000, annual_rate=3.1)
