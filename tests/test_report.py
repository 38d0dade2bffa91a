from io import BytesIO

from openpyxl import load_workbook

from mortgage_planner.calculator import LoanTranche, RepaymentMethod, amortize, combine
from mortgage_planner.prepayment import simulate_prepayment
from mortgage_planner.report import method_cn, prepayment_pdf, schedule_to_xlsx


def _sheet(xlsx_bytes):
    return load_workbook(BytesIO(xlsx_bytes)).active


class TestScheduleXlsx:
    def test_combined_columns(self):
        commercial = amortize(600_000, 4.9, 10, RepaymentMethod.EQUAL_PAYMENT)
        provident = amortize(400_000, 3.1, 10, RepaymentMethod.EQUAL_PAYMENT)
        ws = _sheet(schedule_to_xlsx(combine(commercial, provident), commercial, provident))

        headers = [cell.value for cell in ws[1]]
        assert headers[:5] == ["期数", "月供总额", "本金", "利息", "余额"]
        assert "商贷月供" in headers
        assert "公积金月供" in headers
        assert headers[-1] == "利息总占比"
        assert ws.max_row == 121
        assert ws.cell(row=121, column=1).value == 120
        assert ws.cell(row=121, column=5).value == 0

    def test_unused_tranche_columns_omitted(self):
        commercial = amortize(600_000, 4.9, 5, RepaymentMethod.EQUAL_PRINCIPAL)
        provident = amortize(0, 3.1, 5, RepaymentMethod.EQUAL_PRINCIPAL)
        ws = _sheet(schedule_to_xlsx(combine(commercial, provident), commercial, provident))

        headers = [cell.value for cell in ws[1]]
        assert "商贷月供" in headers
        assert not any(str(h).startswith("公积金") for h in headers)
        assert len(headers) == 11

    def test_single_result(self):
        result = amortize(100_000, 4.0, 5, RepaymentMethod.EQUAL_PAYMENT)
        ws = _sheet(schedule_to_xlsx(result))
        assert ws.max_column == 6
        assert ws.max_row == 61


class TestPrepaymentPdf:
    def test_renders_pdf(self):
        commercial = LoanTranche(600_000, 4.9)
        provident = LoanTranche(400_000, 3.1)
        result = simulate_prepayment(commercial, provident, 30, RepaymentMethod.EQUAL_PAYMENT, 50_000)
        pdf = prepayment_pdf(
            result,
            commercial=commercial,
            provident=provident,
            years=30,
            method=RepaymentMethod.EQUAL_PAYMENT,
            yearly_amount=50_000,
        )
        assert pdf.startswith(b"%PDF")

    def test_method_labels(self):
        assert method_cn("equal_principal") == "等额本金"
        assert method_cn(RepaymentMethod.EQUAL_PAYMENT) == "等额本息"
