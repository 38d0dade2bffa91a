from types import SimpleNamespace

import anthropic
import pytest

from mortgage_planner import config
from mortgage_planner.calculator import RepaymentMethod, amortize
from mortgage_planner.commentary import UNAVAILABLE_MESSAGE, Household, build_prompt, generate_commentary
from mortgage_planner.params import LoanType


class _FakeMessages:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


class _FakeClient:
    def __init__(self, **kwargs):
        self.messages = _FakeMessages(**kwargs)


@pytest.fixture
def loan_result():
    return amortize(1_000_000, 4.9, 30, RepaymentMethod.EQUAL_PAYMENT)


@pytest.fixture
def household():
    return Household(monthly_income=30_000, provident_monthly=4_000, provident_balance=12.5)


class TestBuildPrompt:
    def test_contains_loan_and_household_facts(self, loan_result, household):
        prompt = build_prompt(loan_result, LoanType.COMMERCIAL, "equal_payment", household)
        assert "贷款总额：100.00万元" in prompt
        assert "贷款年限：30年" in prompt
        assert "每月应还：5,307元" in prompt
        assert "商业贷款" in prompt
        assert "等额本息" in prompt
        assert "家庭月收入：30000元" in prompt
        assert "公积金余额：12.5万元" in prompt


class TestGenerateCommentary:
    def test_success(self, loan_result, household):
        client = _FakeClient(text="压力适中。")
        commentary = generate_commentary(loan_result, "combination", RepaymentMethod.EQUAL_PAYMENT, household, client=client)
        assert commentary.available is True
        assert commentary.text == "压力适中。"
        call = client.messages.calls[0]
        assert call["model"] == config.COMMENTARY_MODEL
        assert "组合贷款" in call["messages"][0]["content"]

    def test_sdk_error_returns_apology(self, loan_result, household):
        client = _FakeClient(error=anthropic.AnthropicError("boom"))
        commentary = generate_commentary(loan_result, "commercial", "equal_payment", household, client=client)
        assert commentary.available is False
        assert commentary.text == UNAVAILABLE_MESSAGE

    def test_empty_text_returns_apology(self, loan_result, household):
        client = _FakeClient(text="  ")
        commentary = generate_commentary(loan_result, "commercial", "equal_payment", household, client=client)
        assert commentary.available is False

    def test_missing_key_returns_apology(self, loan_result, household, monkeypatch):
        monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "")
        commentary = generate_commentary(loan_result, "provident", "equal_principal", household)
        assert commentary.available is False
        assert commentary.text == UNAVAILABLE_MESSAGE
