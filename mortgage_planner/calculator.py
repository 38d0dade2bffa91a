from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional
import logging
import math
import sys


logger = logging.getLogger(__name__)


class RepaymentMethod(str, Enum):
    """还款方式：等额本息 / 等额本金。"""

    EQUAL_PAYMENT = "equal_payment"
    EQUAL_PRINCIPAL = "equal_principal"


@dataclass(frozen=True)
class LoanTranche:
    """单笔贷款（商贷或公积金）。

    字段说明：
        principal: 贷款本金（单位：元）。0 表示组合贷中未使用该笔贷款。
        annual_rate: 年利率（百分比），例如 3.45 表示 3.45%。
    """

    principal: float
    annual_rate: float


@dataclass
class ScheduleRow:
    """单期（月）还款计划明细。

    字段说明：
        month_index: 期数序号（从 1 开始）。
        payment: 本期还款额（单位：元）。
        principal: 本期归还本金（单位：元）。
        interest: 本期支付利息（单位：元）。
        balance: 本期还款后剩余本金余额（单位：元）。
    """

    month_index: int
    payment: float
    principal: float
    interest: float
    balance: float


@dataclass
class LoanResult:
    """一种还款方式下的完整还款结果。

    字段说明：
        total_payment: 还款总额。
        total_interest: 支付利息总额。
        loan_amount: 贷款本金。
        years: 贷款年限。
        monthly_payment: 月供（等额本息为固定月供；等额本金为首月月供）。
        monthly_decrease: 等额本金每月递减额；等额本息为 None。
        schedule: 逐月还款计划，长度 = years * 12。
    """

    total_payment: float
    total_interest: float
    loan_amount: float
    years: int
    monthly_payment: float
    monthly_decrease: Optional[float] = None
    schedule: List[ScheduleRow] = field(default_factory=list)

    @property
    def months(self) -> int:
        return len(self.schedule)


def monthly_rate(annual_rate: float) -> float:
    # 年利率百分比 -> 月利率小数。例如 3.6% => 0.003
    return annual_rate / 100.0 / 12.0


def annuity_payment(principal: float, rate: float, months: int) -> float:
    if months <= 0:
        return 0.0
    if rate == 0:
        return principal / months
    exponent = months * math.log1p(rate)
    # 利率过高：月供趋近于当月利息
    if exponent > 700:
        return principal * rate
    # growth = (1 + rate) ** months - 1，用 expm1 避免极小利率下相减得 0
    growth = math.expm1(exponent)
    # 低于最小正规浮点数时公式无法精确计算，按 0 利率处理
    if growth < sys.float_info.min:
        return principal / months
    return principal * (rate / growth) * (1 + growth)


def normalize_method(method) -> RepaymentMethod:
    # 统一并校验还款方式输入，支持一些别名。
    if isinstance(method, RepaymentMethod):
        return method
    if not method:
        raise ValueError("repayment method is required")
    normalized = str(method).strip().lower()
    if normalized in ("annuity", "equal_payment", "equal_installment", "equal_interest"):
        return RepaymentMethod.EQUAL_PAYMENT
    if normalized in ("equal_principal", "principal"):
        return RepaymentMethod.EQUAL_PRINCIPAL
    raise ValueError(f"unsupported repayment method: {method}")


def validate_loan(principal: float, annual_rate: float, years: int) -> None:
    if not math.isfinite(principal) or principal < 0:
        raise ValueError("principal must be a finite number >= 0")
    if not math.isfinite(annual_rate) or annual_rate < 0:
        raise ValueError("annual_rate must be a finite number >= 0")
    if not math.isfinite(years) or int(years) != years or years < 1:
        raise ValueError("years must be a whole number >= 1")


def _equal_payment(principal: float, annual_rate: float, years: int) -> LoanResult:
    # 等额本息：月供固定；本金占比逐月上升、利息占比逐月下降
    months = years * 12
    rate = monthly_rate(annual_rate)
    payment = annuity_payment(principal, rate, months)

    rows: List[ScheduleRow] = []
    balance = principal
    for i in range(1, months + 1):
        interest = balance * rate
        principal_payment = payment - interest
        balance -= principal_payment
        # 最后一期强制清零，吸收浮点误差
        if i == months:
            balance = 0.0
        rows.append(ScheduleRow(i, payment, principal_payment, interest, max(balance, 0.0)))

    total_payment = sum(row.payment for row in rows)
    return LoanResult(
        total_payment=total_payment,
        total_interest=total_payment - principal,
        loan_amount=principal,
        years=years,
        monthly_payment=payment,
        schedule=rows,
    )


def _equal_principal(principal: float, annual_rate: float, years: int) -> LoanResult:
    # 等额本金：每月固定归还本金；利息按剩余本金计算，因此月供逐月递减
    months = years * 12
    rate = monthly_rate(annual_rate)
    principal_part = principal / months

    rows: List[ScheduleRow] = []
    balance = principal
    for i in range(1, months + 1):
        interest = balance * rate
        payment = principal_part + interest
        balance -= principal_part
        if i == months:
            balance = 0.0
        rows.append(ScheduleRow(i, payment, principal_part, interest, max(balance, 0.0)))

    total_payment = sum(row.payment for row in rows)
    decrease = rows[0].payment - rows[1].payment if months > 1 else 0.0
    return LoanResult(
        total_payment=total_payment,
        total_interest=total_payment - principal,
        loan_amount=principal,
        years=years,
        monthly_payment=rows[0].payment,
        monthly_decrease=decrease,
        schedule=rows,
    )


_AMORTIZERS: Dict[RepaymentMethod, Callable[[float, float, int], LoanResult]] = {
    RepaymentMethod.EQUAL_PAYMENT: _equal_payment,
    RepaymentMethod.EQUAL_PRINCIPAL: _equal_principal,
}


def amortize(principal: float, annual_rate: float, years: int, method) -> LoanResult:
    """生成单笔贷款的完整逐月还款计划。

    principal 为 0 时返回全零结果，但 schedule 仍有 years * 12 期（便于组合贷逐期相加）。
    """
    validate_loan(principal, annual_rate, years)
    method = normalize_method(method)
    years = int(years)
    logger.debug("amortize principal=%s annual_rate=%s years=%s method=%s", principal, annual_rate, years, method.value)
    return _AMORTIZERS[method](float(principal), float(annual_rate), years)


def amortize_tranche(tranche: LoanTranche, years: int, method) -> LoanResult:
    return amortize(tranche.principal, tranche.annual_rate, years, method)


def combine(first: LoanResult, second: LoanResult) -> LoanResult:
    """合并两笔贷款（商贷 + 公积金）的还款结果：汇总字段相加，还款计划逐期相加。"""
    if first.months != second.months:
        raise ValueError("tranches must share the same number of months to be combined")

    schedule = [
        ScheduleRow(
            a.month_index,
            a.payment + b.payment,
            a.principal + b.principal,
            a.interest + b.interest,
            a.balance + b.balance,
        )
        for a, b in zip(first.schedule, second.schedule)
    ]

    decrease = None
    if first.monthly_decrease is not None or second.monthly_decrease is not None:
        decrease = (first.monthly_decrease or 0.0) + (second.monthly_decrease or 0.0)

    return LoanResult(
        total_payment=first.total_payment + second.total_payment,
        total_interest=first.total_interest + second.total_interest,
        loan_amount=first.loan_amount + second.loan_amount,
        years=first.years,
        monthly_payment=first.monthly_payment + second.monthly_payment,
        monthly_decrease=decrease,
        schedule=schedule,
    )


def calculate_loan(commercial: LoanTranche, provident: LoanTranche, years: int) -> Dict[RepaymentMethod, LoanResult]:
    # 两种还款方式分别计算，再把商贷与公积金合并为一份结果
    results: Dict[RepaymentMethod, LoanResult] = {}
    for method in RepaymentMethod:
        results[method] = combine(
            amortize_tranche(commercial, years, method),
            amortize_tranche(provident, years, method),
        )
    return results
