from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import math

from mortgage_planner.calculator import (
    LoanTranche,
    RepaymentMethod,
    amortize_tranche,
    annuity_payment,
    combine,
    monthly_rate,
    normalize_method,
    validate_loan,
)
from mortgage_planner.config import PAID_OFF_THRESHOLD


logger = logging.getLogger(__name__)

COMMERCIAL = "commercial"
PROVIDENT = "provident"

# 提前还款先还商贷（利率通常更高），剩余部分再还公积金
DEFAULT_APPLY_ORDER = (COMMERCIAL, PROVIDENT)


@dataclass
class PrepaymentYear:
    """每年年末（当年提前还款之后）的快照。

    字段说明：
        year: 贷款年度（从 1 开始）。
        remaining_principal: 年末提前还款后剩余本金（商贷 + 公积金）。
        next_month_payment: 下一年首月月供。
    """

    year: int
    remaining_principal: float
    next_month_payment: float


@dataclass
class PrepaymentResult:
    """每年固定提前还款（减少月供、期限不变）的模拟结果。

    字段说明：
        total_interest_saved: 相比不提前还款节省的利息。
        baseline_interest: 不提前还款的总利息。
        total_interest: 提前还款方案的总利息。
        schedule: 逐年快照，长度始终等于贷款年限；提前结清后的年份补零。
    """

    total_interest_saved: float
    baseline_interest: float
    total_interest: float
    schedule: List[PrepaymentYear] = field(default_factory=list)

    @property
    def payoff_year(self) -> Optional[int]:
        # 提前结清的年度；按原期限还完则为 None
        for row in self.schedule[:-1]:
            if row.remaining_principal <= 0:
                return row.year
        return None


@dataclass
class _TrancheState:
    name: str
    rate: float
    balance: float


def scheduled_split(
    balance: float,
    rate: float,
    remaining_months: int,
    method: RepaymentMethod,
    paid_off_threshold: float = PAID_OFF_THRESHOLD,
) -> Tuple[float, float, float]:
    """按当前剩余本金与剩余期数重新计算本期 (月供, 利息, 本金)。"""
    if balance <= paid_off_threshold or remaining_months <= 0:
        return 0.0, 0.0, 0.0

    interest = balance * rate
    if method == RepaymentMethod.EQUAL_PAYMENT:
        # 每期都按新的剩余本金、剩余期数重新套用等额本息公式
        payment = annuity_payment(balance, rate, remaining_months)
        principal = payment - interest
    else:
        principal = balance / remaining_months
        payment = principal + interest
    return payment, interest, principal


def _apply_lump_sum(states: Sequence[_TrancheState], amount: float, paid_off_threshold: float) -> float:
    # 按顺序冲减各笔贷款本金，单笔不超过其剩余本金；返回实际使用的金额
    available = amount
    for state in states:
        if available <= 0:
            break
        if state.balance <= 0:
            continue
        paid = min(state.balance, available)
        state.balance -= paid
        available -= paid
        if state.balance <= paid_off_threshold:
            state.balance = 0.0
    return amount - available


def simulate_prepayment(
    commercial: LoanTranche,
    provident: LoanTranche,
    years: int,
    method,
    yearly_amount: float,
    *,
    paid_off_threshold: float = PAID_OFF_THRESHOLD,
    apply_order: Sequence[str] = DEFAULT_APPLY_ORDER,
) -> PrepaymentResult:
    """每满 12 期提前还款一次 yearly_amount，期限不变、月供随之减少。

    主流程：
    1) 逐月按剩余本金、剩余期数重新计算每笔贷款的月供拆分，累计利息
    2) 每年最后一期后按 apply_order 冲减本金，并记录下一期月供
    3) 与不提前还款的基准方案比较，得到节省利息
    """
    validate_loan(commercial.principal, commercial.annual_rate, years)
    validate_loan(provident.principal, provident.annual_rate, years)
    if not math.isfinite(yearly_amount) or yearly_amount <= 0:
        raise ValueError("yearly prepayment amount must be a finite number greater than 0")
    if paid_off_threshold < 0:
        raise ValueError("paid_off_threshold must not be negative")
    if sorted(apply_order) != sorted(DEFAULT_APPLY_ORDER):
        raise ValueError(f"apply_order must be a permutation of {list(DEFAULT_APPLY_ORDER)}")

    method = normalize_method(method)
    years = int(years)
    total_months = years * 12

    baseline = combine(
        amortize_tranche(commercial, years, method),
        amortize_tranche(provident, years, method),
    )

    by_name: Dict[str, _TrancheState] = {
        COMMERCIAL: _TrancheState(COMMERCIAL, monthly_rate(commercial.annual_rate), float(commercial.principal)),
        PROVIDENT: _TrancheState(PROVIDENT, monthly_rate(provident.annual_rate), float(provident.principal)),
    }
    states = [by_name[COMMERCIAL], by_name[PROVIDENT]]
    ordered = [by_name[name] for name in apply_order]
    for state in states:
        if state.balance <= paid_off_threshold:
            state.balance = 0.0

    total_interest = 0.0
    snapshots: List[PrepaymentYear] = []

    for month in range(1, total_months + 1):
        # 剩余期数包含本期：第 1 期剩余 total_months 期，最后一期剩余 1 期
        remaining_months = total_months - month + 1

        for state in states:
            _, interest, principal = scheduled_split(state.balance, state.rate, remaining_months, method, paid_off_threshold)
            total_interest += interest
            state.balance = max(state.balance - principal, 0.0)
            if state.balance <= paid_off_threshold:
                state.balance = 0.0

        if month % 12 != 0 or not any(state.balance > 0 for state in states):
            continue

        _apply_lump_sum(ordered, yearly_amount, paid_off_threshold)

        next_remaining = total_months - month
        next_payment = 0.0
        if next_remaining > 0:
            next_payment = sum(
                scheduled_split(state.balance, state.rate, next_remaining, method, paid_off_threshold)[0]
                for state in states
            )

        snapshots.append(
            PrepaymentYear(
                year=month // 12,
                remaining_principal=sum(state.balance for state in states),
                next_month_payment=next_payment,
            )
        )
        if not any(state.balance > 0 for state in states):
            logger.debug("loan paid off at month %s of %s", month, total_months)

    # 提前结清后，剩余年度补零，保证快照数量 = 贷款年限
    last_year = snapshots[-1].year if snapshots else 0
    for year in range(last_year + 1, years + 1):
        snapshots.append(PrepaymentYear(year=year, remaining_principal=0.0, next_month_payment=0.0))

    return PrepaymentResult(
        total_interest_saved=baseline.total_interest - total_interest,
        baseline_interest=baseline.total_interest,
        total_interest=total_interest,
        schedule=snapshots,
    )
