from __future__ import annotations

from datetime import date
from io import BytesIO
from typing import List, Optional, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.platypus import (
    SimpleDocTemplate,
    Paragraph,
    Spacer,
    Table,
    TableStyle,
    Flowable,
)

from mortgage_planner.calculator import LoanResult, LoanTranche, RepaymentMethod, ScheduleRow, normalize_method
from mortgage_planner.prepayment import PrepaymentResult


# --- Setup Fonts and Colors ---

FONT_NAME = "STSong-Light"
NUM_FONT = "Helvetica"  # 数字/英文使用西文字体，避免拥挤
pdfmetrics.registerFont(UnicodeCIDFont(FONT_NAME))

PALETTE = {
    "primary_text": "#1E293B",
    "secondary_text": "#64748B",
    "accent_green": "#10B981",
    "highlight_bg": "#F1F5F9",
    "border": "#E2E8F0",
    "white": "#FFFFFF",
    "dark_header": "#0F172A",
}


def method_cn(method) -> str:
    """还款方式中文化显示。"""
    if normalize_method(method) == RepaymentMethod.EQUAL_PRINCIPAL:
        return "等额本金"
    return "等额本息"


def _fmt_money_font(v: float) -> str:
    return f"<font name='{FONT_NAME}'>￥</font><font name='{NUM_FONT}'>{v:,.2f}</font>"


def _fmt_percent_font(v: float) -> str:
    return f"<font name='{NUM_FONT}'>{v:.2f}%</font>"


def _ratio(interest: float, payment: float) -> float:
    return interest / payment * 100 if payment else 0.0


# -------------------- Excel --------------------


def schedule_to_xlsx(
    result: LoanResult,
    commercial: Optional[LoanResult] = None,
    provident: Optional[LoanResult] = None,
) -> bytes:
    """还款计划导出 Excel：本金非 0 的商贷/公积金各自输出一组列，最后是利息总占比。"""
    wb = Workbook()
    ws = wb.active
    ws.title = "Schedule"

    groups: List[Tuple[str, LoanResult, PatternFill, PatternFill]] = []
    if commercial is not None and commercial.loan_amount > 0:
        groups.append(("商贷", commercial, PatternFill("solid", fgColor="1D4ED8"), PatternFill("solid", fgColor="EFF6FF")))
    if provident is not None and provident.loan_amount > 0:
        groups.append(("公积金", provident, PatternFill("solid", fgColor="047857"), PatternFill("solid", fgColor="ECFDF3")))

    headers = ["期数", "月供总额", "本金", "利息", "余额"]
    for label, _, _, _ in groups:
        headers += [f"{label}月供", f"{label}本金", f"{label}利息", f"{label}余额", f"{label}利息占比"]
    headers.append("利息总占比")
    ws.append(headers)

    header_font = Font(bold=True, name="Arial", size=11, color="FFFFFF")
    body_font = Font(name="Arial", size=10)
    header_fill_base = PatternFill("solid", fgColor="0F172A")
    alt_fill = PatternFill("solid", fgColor="F8FAFC")
    border = Border(bottom=Side(style="thin", color="E2E8F0"))
    align_right = Alignment(horizontal="right")
    align_center = Alignment(horizontal="center")

    # 每组 5 列，从第 6 列开始
    group_cols = {}
    for g, (_, _, header_fill, body_fill) in enumerate(groups):
        start = 6 + g * 5
        for col in range(start, start + 5):
            group_cols[col] = (header_fill, body_fill)

    for idx, cell in enumerate(ws[1], start=1):
        cell.font = header_font
        cell.fill = group_cols[idx][0] if idx in group_cols else header_fill_base
        cell.alignment = align_center

    for idx, row in enumerate(result.schedule):
        values = [
            row.month_index,
            round(row.payment, 2),
            round(row.principal, 2),
            round(row.interest, 2),
            round(row.balance, 2),
        ]
        for _, tranche, _, _ in groups:
            t: ScheduleRow = tranche.schedule[idx]
            values += [
                round(t.payment, 2),
                round(t.principal, 2),
                round(t.interest, 2),
                round(t.balance, 2),
                f"{_ratio(t.interest, t.payment):.2f}%",
            ]
        values.append(f"{_ratio(row.interest, row.payment):.2f}%")
        ws.append(values)

        excel_row = idx + 2
        for col_idx in range(1, len(values) + 1):
            cell = ws.cell(row=excel_row, column=col_idx)
            cell.font = body_font
            cell.alignment = align_right if col_idx > 1 else align_center
            if col_idx in group_cols:
                cell.fill = group_cols[col_idx][1]
            elif excel_row % 2 == 0:
                cell.fill = alt_fill
            cell.border = border

    for i in range(1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(i)].width = 14

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


# -------------------- PDF --------------------


class PageHeader(Flowable):
    """一条水平分割线。"""

    def __init__(self, width, height=0):
        super().__init__()
        self.width = width
        self.height = height

    def draw(self):
        self.canv.setStrokeColor(colors.HexColor(PALETTE["border"]))
        self.canv.setLineWidth(0.4)
        self.canv.line(0, self.height, self.width, self.height)


def _header_footer(canvas, doc):
    """每页页眉页脚。"""
    canvas.saveState()
    canvas.setFont(FONT_NAME, 9)
    canvas.setFillColor(colors.HexColor(PALETTE["secondary_text"]))
    canvas.setStrokeColor(colors.HexColor(PALETTE["border"]))
    canvas.setLineWidth(0.4)
    canvas.line(doc.leftMargin, doc.height + doc.topMargin - 9 * mm, doc.width + doc.leftMargin, doc.height + doc.topMargin - 9 * mm)
    canvas.drawString(doc.leftMargin, doc.height + doc.topMargin - 7 * mm, "房贷提前还款测算")

    canvas.setFont(FONT_NAME, 8)
    canvas.drawString(doc.leftMargin, 10 * mm, f"生成日期: {date.today().strftime('%Y-%m-%d')}")
    canvas.drawRightString(doc.width + doc.leftMargin, 10 * mm, f"第 {doc.page} 页")
    canvas.restoreState()


def prepayment_pdf(
    result: PrepaymentResult,
    *,
    commercial: LoanTranche,
    provident: LoanTranche,
    years: int,
    method,
    yearly_amount: float,
) -> bytes:
    """根据 simulate_prepayment 的结果生成 PDF 报告，返回二进制。"""
    styles = getSampleStyleSheet()

    base_style = ParagraphStyle(
        "base_cn",
        parent=styles["BodyText"],
        fontName=FONT_NAME,
        fontSize=10.2,
        leading=17,
        wordWrap="CJK",
        textColor=colors.HexColor(PALETTE["primary_text"]),
    )

    title_style = ParagraphStyle(
        "title_cn",
        parent=styles["Title"],
        fontName=FONT_NAME,
        fontSize=22,
        leading=30,
        textColor=colors.HexColor(PALETTE["primary_text"]),
        spaceAfter=8,
    )

    big_green_style = ParagraphStyle(
        "big_green",
        parent=styles["Title"],
        fontName=NUM_FONT,
        fontSize=34,
        leading=42,
        textColor=colors.HexColor(PALETTE["accent_green"]),
        alignment=1,
        spaceBefore=4,
        spaceAfter=4,
    )

    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=28 * mm,
        bottomMargin=22 * mm,
        title="房贷提前还款测算报告",
    )

    story = []
    story.append(Paragraph("<b>提前还款测算报告</b>", title_style))
    story.append(PageHeader(doc.width))
    story.append(Spacer(1, 5 * mm))

    loan_lines = []
    if commercial.principal > 0:
        loan_lines.append(f"商贷：{_fmt_money_font(commercial.principal)}，年利率 {_fmt_percent_font(commercial.annual_rate)}")
    if provident.principal > 0:
        loan_lines.append(f"公积金：{_fmt_money_font(provident.principal)}，年利率 {_fmt_percent_font(provident.annual_rate)}")
    loan_lines.append(f"贷款年限：{int(years)} 年（{int(years) * 12} 期）")
    loan_lines.append(f"还款方式：{method_cn(method)}")

    payoff_year = result.payoff_year
    plan_lines = [
        f"每年提前还款：{_fmt_money_font(yearly_amount)}",
        "还款策略：先还商贷，再还公积金；减少月供，期限不变",
        f"原方案总利息：{_fmt_money_font(result.baseline_interest)}",
        f"提前还款后总利息：{_fmt_money_font(result.total_interest)}",
        f"预计第 {payoff_year} 年末结清" if payoff_year else "按原期限还清",
    ]

    info_table = Table(
        [
            ["贷款信息", "提前还款方案"],
            [Paragraph("<br/>".join(loan_lines), base_style), Paragraph("<br/>".join(plan_lines), base_style)],
        ],
        colWidths=[85 * mm, 85 * mm],
    )
    info_table.setStyle(
        TableStyle(
            [
                ("FONT", (0, 0), (-1, -1), FONT_NAME, 9.7),
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(PALETTE["highlight_bg"])),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.HexColor(PALETTE["secondary_text"])),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("BOX", (0, 0), (-1, -1), 0.8, colors.HexColor(PALETTE["border"])),
                ("INNERGRID", (0, 0), (-1, -1), 0.25, colors.HexColor(PALETTE["border"])),
                ("LEFTPADDING", (0, 0), (-1, -1), 9),
                ("RIGHTPADDING", (0, 0), (-1, -1), 9),
                ("TOPPADDING", (0, 0), (-1, -1), 9),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 9),
            ]
        )
    )
    story.append(info_table)
    story.append(Spacer(1, 6 * mm))

    story.append(Paragraph("预计为您节省利息", ParagraphStyle(name="saving_title_cn", parent=base_style, alignment=1, fontSize=11)))
    story.append(Paragraph(f"{_fmt_money_font(result.total_interest_saved)}", big_green_style))
    story.append(Spacer(1, 6 * mm))

    year_data = [["年度", "年末剩余本金", "次年首月月供"]]
    for row in result.schedule:
        year_data.append([f"第 {row.year} 年", f"{row.remaining_principal:,.2f}", f"{row.next_month_payment:,.2f}"])

    t = Table(year_data, colWidths=[40 * mm, 65 * mm, 65 * mm], repeatRows=1)
    t.setStyle(
        TableStyle(
            [
                ("FONT", (0, 0), (-1, -1), FONT_NAME, 9.5),
                ("FONT", (1, 1), (-1, -1), NUM_FONT, 9.5),
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(PALETTE["dark_header"])),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.HexColor(PALETTE["white"])),
                ("ALIGN", (1, 1), (-1, -1), "RIGHT"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.HexColor("#FFFFFF"), colors.HexColor(PALETTE["highlight_bg"])]),
                ("LEFTPADDING", (0, 0), (-1, -1), 6),
                ("RIGHTPADDING", (0, 0), (-1, -1), 6),
                ("TOPPADDING", (0, 0), (-1, -1), 6),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ]
        )
    )
    story.append(t)

    story.append(Spacer(1, 8 * mm))
    story.append(
        Paragraph(
            "<b>免责声明：</b>本报告基于您提供的数据进行数学模拟，结果仅供参考。实际还款规则可能受银行计息方式、扣款日、提前还款手续费等多种因素影响。",
            ParagraphStyle(
                "disclaimer",
                parent=base_style,
                fontSize=8.5,
                leading=14,
                textColor=colors.HexColor(PALETTE["secondary_text"]),
            ),
        )
    )

    doc.build(story, onFirstPage=_header_footer, onLaterPages=_header_footer)
    return buf.getvalue()
