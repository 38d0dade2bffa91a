"""房贷计算器 Python 包：商贷 / 公积金 / 组合贷月供计算与提前还款测算。

常用导入：
    from mortgage_planner import LoanTranche, amortize, combine, simulate_prepayment

HTTP 服务：
    uvicorn mortgage_planner.api:app
"""

from .calculator import (
    LoanResult,
    LoanTranche,
    RepaymentMethod,
    ScheduleRow,
    amortize,
    calculate_loan,
    combine,
)
from .prepayment import PrepaymentResult, PrepaymentYear, simulate_prepayment

__all__ = [
    "LoanResult",
    "LoanTranche",
    "RepaymentMethod",
    "ScheduleRow",
    "amortize",
    "calculate_loan",
    "combine",
    "PrepaymentResult",
    "PrepaymentYear",
    "simulate_prepayment",
]
