from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from mortgage_planner.calculator import LoanTranche


WAN = 10000

DEFAULT_COMMERCIAL_RATE = 3.45  # 商贷默认利率（参考 LPR）
DEFAULT_PROVIDENT_RATE = 2.85  # 公积金默认利率

TERM_OPTIONS = (5, 10, 15, 20, 25, 30)
DOWN_PAYMENT_OPTIONS = (15, 20, 30, 40, 50, 60, 70)

COMMERCIAL_RATE_OPTIONS = (
    (3.05, "首套房利率"),
    (3.45, "二套房利率(外环内)"),
    (3.25, "二套房利率(外环外)"),
    (3.50, "最新LPR报价利率"),
    (3.30, "存量房贷利率"),
)

PROVIDENT_RATE_OPTIONS = (
    (2.60, "首套公积金贷款利率"),
    (3.075, "二套公积金贷款利率"),
)


class LoanType(str, Enum):
    COMMERCIAL = "commercial"  # 商业贷款
    PROVIDENT = "provident"  # 公积金贷款
    COMBINATION = "combination"  # 组合贷款


class InputMode(str, Enum):
    BY_TOTAL_PRICE = "by_total_price"  # 按房价总额
    BY_LOAN_AMOUNT = "by_loan_amount"  # 按贷款总额


@dataclass
class LoanParams:
    """页面输入的贷款参数（金额单位：万元）。

    字段说明：
        loan_type: 贷款类型（商贷 / 公积金 / 组合贷）。
        input_mode: 计算方式（按房价总额 / 按贷款总额），组合贷忽略。
        total_price: 房屋总价（万元）。
        down_payment_ratio: 首付比例（百分比 0-100）。
        loan_amount: 贷款总额（万元）。
        commercial_amount: 组合贷中商贷金额（万元）。
        provident_amount: 组合贷中公积金金额（万元）。
        years: 贷款年限。
        commercial_rate: 商贷年利率（%）。
        provident_rate: 公积金年利率（%）。
    """

    loan_type: LoanType
    years: int
    input_mode: InputMode = InputMode.BY_LOAN_AMOUNT
    total_price: float = 0.0
    down_payment_ratio: float = 30.0
    loan_amount: float = 0.0
    commercial_amount: float = 0.0
    provident_amount: float = 0.0
    commercial_rate: float = DEFAULT_COMMERCIAL_RATE
    provident_rate: float = DEFAULT_PROVIDENT_RATE


def from_wan(amount_wan: float) -> float:
    return amount_wan * WAN


def to_wan(amount: float) -> float:
    return round(amount / WAN, 2)


def total_loan(params: LoanParams) -> float:
    # 单一贷款（商贷或公积金）的贷款总额（元）
    if params.input_mode == InputMode.BY_TOTAL_PRICE:
        if not 0 <= params.down_payment_ratio <= 100:
            raise ValueError("down_payment_ratio must be between 0 and 100")
        return from_wan(params.total_price) * (1 - params.down_payment_ratio / 100.0)
    return from_wan(params.loan_amount)


def resolve_tranches(params: LoanParams) -> Tuple[LoanTranche, LoanTranche]:
    """把页面参数换算成 (商贷, 公积金) 两笔贷款，单位：元。未使用的一笔本金为 0。"""
    loan_type = LoanType(params.loan_type)
    if loan_type == LoanType.COMBINATION:
        commercial_principal = from_wan(params.commercial_amount)
        provident_principal = from_wan(params.provident_amount)
    elif loan_type == LoanType.COMMERCIAL:
        commercial_principal, provident_principal = total_loan(params), 0.0
    else:
        commercial_principal, provident_principal = 0.0, total_loan(params)

    if commercial_principal <= 0 and provident_principal <= 0:
        raise ValueError("loan amount must be greater than 0")

    return (
        LoanTranche(commercial_principal, params.commercial_rate),
        LoanTranche(provident_principal, params.provident_rate),
    )
