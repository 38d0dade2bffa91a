"""AI 财务点评：把还款结果整理成提示词，调用 Anthropic Messages API 生成中文分析。

调用失败（未配置 key、网络错误、SDK 异常）时只记录日志并返回致歉文案，
不影响还款计划与汇总数据的展示。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import logging

import anthropic

from mortgage_planner import config
from mortgage_planner.calculator import LoanResult, RepaymentMethod, normalize_method
from mortgage_planner.params import LoanType, to_wan


logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "AI分析服务暂时不可用，请检查网络或稍后再试。"

_LOAN_TYPE_CN = {
    LoanType.COMMERCIAL: "商业贷款",
    LoanType.PROVIDENT: "公积金贷款",
    LoanType.COMBINATION: "组合贷款",
}

_METHOD_CN = {
    RepaymentMethod.EQUAL_PAYMENT: "等额本息",
    RepaymentMethod.EQUAL_PRINCIPAL: "等额本金",
}


@dataclass
class Household:
    """家庭财务信息。

    字段说明：
        monthly_income: 家庭月收入（元）。
        provident_monthly: 月公积金缴纳总额（个人 + 公司，元）。
        provident_balance: 公积金账户余额（万元）。
    """

    monthly_income: float
    provident_monthly: float
    provident_balance: float


@dataclass
class Commentary:
    text: str
    available: bool


def build_prompt(result: LoanResult, loan_type, method, household: Household) -> str:
    loan_type = LoanType(loan_type)
    method = normalize_method(method)
    return f"""作为一名专业的金融顾问，请根据以下房贷和家庭财务数据进行分析：

【房贷信息】
- 贷款总额：{to_wan(result.loan_amount):.2f}万元
- 贷款年限：{result.years}年
- 每月应还：{round(result.monthly_payment):,}元
- 贷款类型：{_LOAN_TYPE_CN[loan_type]}
- 还款方式：{_METHOD_CN[method]}

【家庭财务】
- 家庭月收入：{household.monthly_income:g}元
- 月公积金缴纳：{household.provident_monthly:g}元
- 公积金余额：{household.provident_balance:g}万元

请从以下维度进行分析并给出建议（请使用中文，格式清晰，语气专业且贴心）：
1. **还款压力评估**：计算家庭收入+公积金对月供的覆盖情况，评估压力等级。
2. **公积金支撑能力**：当前的公积金余额加上每月缴纳，能支持多久的月供，或者每月能抵扣多少。
3. **风险提示**：考虑可能的失业风险或利率波动（如果是LPR）对生活质量的影响。
4. **财务规划建议**：给出具体的建议，如是否需要提前还款、预留多少应急资金等。
"""


def generate_commentary(
    result: LoanResult,
    loan_type,
    method,
    household: Household,
    client: Optional[anthropic.Anthropic] = None,
) -> Commentary:
    if client is None:
        if not config.ANTHROPIC_API_KEY:
            logger.warning("ANTHROPIC_API_KEY not configured, skipping commentary")
            return Commentary(UNAVAILABLE_MESSAGE, False)
        client = anthropic.Anthropic(api_key=config.ANTHROPIC_API_KEY)

    prompt = build_prompt(result, loan_type, method, household)
    try:
        message = client.messages.create(
            model=config.COMMENTARY_MODEL,
            max_tokens=config.COMMENTARY_MAX_TOKENS,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(block.text for block in message.content if getattr(block, "type", "") == "text")
    except anthropic.AnthropicError as e:
        logger.warning("commentary generation failed: %s", e)
        return Commentary(UNAVAILABLE_MESSAGE, False)

    if not text.strip():
        logger.warning("commentary generation returned empty text")
        return Commentary(UNAVAILABLE_MESSAGE, False)
    return Commentary(text, True)
