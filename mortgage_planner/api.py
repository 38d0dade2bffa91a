from __future__ import annotations

from contextlib import asynccontextmanager
from io import BytesIO
from typing import List, Optional
import logging
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Request, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, field_validator, model_validator
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from mortgage_planner import config
from mortgage_planner.calculator import LoanResult, RepaymentMethod, amortize_tranche, calculate_loan, combine
from mortgage_planner.commentary import Household, generate_commentary
from mortgage_planner.params import (
    COMMERCIAL_RATE_OPTIONS,
    DEFAULT_COMMERCIAL_RATE,
    DEFAULT_PROVIDENT_RATE,
    DOWN_PAYMENT_OPTIONS,
    PROVIDENT_RATE_OPTIONS,
    TERM_OPTIONS,
    InputMode,
    LoanParams,
    LoanType,
    WAN,
    from_wan,
    resolve_tranches,
)
from mortgage_planner.prepayment import simulate_prepayment
from mortgage_planner.report import prepayment_pdf, schedule_to_xlsx


logger = logging.getLogger(__name__)

MAX_AMOUNT_WAN = config.MAX_PRINCIPAL / WAN


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        candidate = forwarded.split(",")[0].strip()
        if candidate:
            return candidate
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return get_remote_address(request)


limiter = Limiter(key_func=_client_ip, default_limits=[config.DEFAULT_RATE_LIMIT])


def configure_logging() -> None:
    logging.basicConfig(level=config.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 服务启动时才配置根日志，import 本模块不产生副作用
    configure_logging()
    yield


app = FastAPI(
    title="房贷计算器",
    description="商贷 / 公积金 / 组合贷月供计算与提前还款测算。",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


def require_api_key(request: Request):
    if not config.API_KEY:
        return
    provided = request.headers.get("x-api-key")
    if not provided or provided != config.API_KEY:
        raise HTTPException(status_code=401, detail="invalid or missing api key")


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(status_code=429, content={"detail": "Rate limit exceeded"})


class LoanRequest(BaseModel):
    # 金额单位：万元；利率单位：%
    loan_type: LoanType = Field(..., description="贷款类型：commercial(商贷) / provident(公积金) / combination(组合贷)")
    input_mode: InputMode = Field(InputMode.BY_LOAN_AMOUNT, description="计算方式：by_total_price(按房价总额) / by_loan_amount(按贷款总额)")
    total_price: float = Field(0, ge=0, description="房屋总价（万元）")
    down_payment_ratio: float = Field(30, ge=0, le=100, description="首付比例（%）")
    loan_amount: float = Field(0, ge=0, le=MAX_AMOUNT_WAN, description="贷款总额（万元）")
    commercial_amount: float = Field(0, ge=0, le=MAX_AMOUNT_WAN, description="组合贷：商贷金额（万元）")
    provident_amount: float = Field(0, ge=0, le=MAX_AMOUNT_WAN, description="组合贷：公积金金额（万元）")
    years: int = Field(..., description="贷款年限：5/10/15/20/25/30")
    commercial_rate: float = Field(DEFAULT_COMMERCIAL_RATE, ge=0, le=config.MAX_ANNUAL_RATE, description="商贷年利率（%）")
    provident_rate: float = Field(DEFAULT_PROVIDENT_RATE, ge=0, le=config.MAX_ANNUAL_RATE, description="公积金年利率（%）")

    @field_validator("years")
    @classmethod
    def _validate_years(cls, value: int) -> int:
        if value not in TERM_OPTIONS:
            raise ValueError(f"years must be one of {list(TERM_OPTIONS)}")
        return value

    @model_validator(mode="after")
    def _validate_amounts(self) -> "LoanRequest":
        if self.loan_type == LoanType.COMBINATION:
            if self.commercial_amount <= 0 and self.provident_amount <= 0:
                raise ValueError("commercial_amount 与 provident_amount 不能同时为 0")
        elif self.input_mode == InputMode.BY_TOTAL_PRICE:
            if self.total_price <= 0:
                raise ValueError("total_price must be greater than 0")
            if self.down_payment_ratio >= 100:
                raise ValueError("down_payment_ratio must be less than 100")
        elif self.loan_amount <= 0:
            raise ValueError("loan_amount must be greater than 0")
        return self

    def to_params(self) -> LoanParams:
        return LoanParams(
            loan_type=self.loan_type,
            years=self.years,
            input_mode=self.input_mode,
            total_price=self.total_price,
            down_payment_ratio=self.down_payment_ratio,
            loan_amount=self.loan_amount,
            commercial_amount=self.commercial_amount,
            provident_amount=self.provident_amount,
            commercial_rate=self.commercial_rate,
            provident_rate=self.provident_rate,
        )


class CalcRequest(LoanRequest):
    include_schedule: bool = Field(False, description="是否返回逐月还款计划")


class ExportRequest(LoanRequest):
    method: RepaymentMethod = Field(RepaymentMethod.EQUAL_PAYMENT, description="还款方式：equal_payment(等额本息) / equal_principal(等额本金)")


class PrepaymentRequest(ExportRequest):
    prepay_amount: float = Field(..., gt=0, le=MAX_AMOUNT_WAN, description="每年提前还款金额（万元）")


class CommentaryRequest(ExportRequest):
    monthly_income: float = Field(..., gt=0, description="家庭月收入（元）")
    provident_monthly: float = Field(..., ge=0, description="月公积金缴纳总额（元）")
    provident_balance: float = Field(..., ge=0, description="公积金账户余额（万元）")


class ScheduleItem(BaseModel):
    month_index: int
    payment: float
    principal: float
    interest: float
    balance: float


class LoanSummary(BaseModel):
    total_payment: float
    total_interest: float
    loan_amount: float
    years: int
    monthly_payment: float
    monthly_decrease: Optional[float] = None
    schedule: Optional[List[ScheduleItem]] = None


class CalcResponse(BaseModel):
    equal_payment: LoanSummary
    equal_principal: LoanSummary


class PrepaymentYearItem(BaseModel):
    year: int
    remaining_principal: float
    next_month_payment: float


class PrepaymentResponse(BaseModel):
    total_interest_saved: float
    baseline_interest: float
    total_interest: float
    payoff_year: Optional[int]
    schedule: List[PrepaymentYearItem]


class CommentaryResponse(BaseModel):
    commentary: str
    available: bool


def _summary(result: LoanResult, include_schedule: bool) -> LoanSummary:
    schedule = None
    if include_schedule:
        schedule = [
            ScheduleItem(
                month_index=row.month_index,
                payment=row.payment,
                principal=row.principal,
                interest=row.interest,
                balance=row.balance,
            )
            for row in result.schedule
        ]
    return LoanSummary(
        total_payment=float(result.total_payment),
        total_interest=float(result.total_interest),
        loan_amount=float(result.loan_amount),
        years=result.years,
        monthly_payment=float(result.monthly_payment),
        monthly_decrease=result.monthly_decrease,
        schedule=schedule,
    )


def _ensure_export_size(size_bytes: int) -> None:
    if size_bytes > config.MAX_EXPORT_BYTES:
        raise HTTPException(status_code=413, detail="export file too large")


@app.get("/health", tags=["health"])
@limiter.exempt
def health() -> dict:
    return {"status": "ok"}


@app.get("/v1/loans/options", tags=["loan"])
@limiter.limit(config.DEFAULT_RATE_LIMIT)
def loan_options(request: Request) -> dict:
    return {
        "term_options": list(TERM_OPTIONS),
        "down_payment_options": list(DOWN_PAYMENT_OPTIONS),
        "default_commercial_rate": DEFAULT_COMMERCIAL_RATE,
        "default_provident_rate": DEFAULT_PROVIDENT_RATE,
        "commercial_rates": [{"value": v, "label": label} for v, label in COMMERCIAL_RATE_OPTIONS],
        "provident_rates": [{"value": v, "label": label} for v, label in PROVIDENT_RATE_OPTIONS],
    }


@app.post(
    "/v1/loans:calc",
    tags=["loan"],
    responses={400: {"description": "Invalid loan parameters"}},
)
@limiter.limit(config.DEFAULT_RATE_LIMIT)
def calc_loan(request: Request, body: CalcRequest, _=Depends(require_api_key)) -> CalcResponse:
    try:
        commercial, provident = resolve_tranches(body.to_params())
        results = calculate_loan(commercial, provident, body.years)
    except ValueError as e:
        logger.info("rejected loan calc: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    return CalcResponse(
        equal_payment=_summary(results[RepaymentMethod.EQUAL_PAYMENT], body.include_schedule),
        equal_principal=_summary(results[RepaymentMethod.EQUAL_PRINCIPAL], body.include_schedule),
    )


@app.post(
    "/v1/loans:export-xlsx",
    tags=["loan"],
    responses={400: {"description": "Invalid loan parameters"}},
)
@limiter.limit(config.EXPORT_RATE_LIMIT)
def export_schedule(request: Request, body: ExportRequest, _=Depends(require_api_key)):
    """还款计划导出 Excel，响应头返回总利息。"""
    try:
        commercial, provident = resolve_tranches(body.to_params())
        commercial_result = amortize_tranche(commercial, body.years, body.method)
        provident_result = amortize_tranche(provident, body.years, body.method)
        combined = combine(commercial_result, provident_result)
    except ValueError as e:
        logger.info("rejected schedule export: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    xlsx_bytes = schedule_to_xlsx(combined, commercial_result, provident_result)
    _ensure_export_size(len(xlsx_bytes))

    return StreamingResponse(
        BytesIO(xlsx_bytes),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": "attachment; filename=loan_schedule.xlsx; "
            f"filename*=UTF-8''{quote('房贷月供明细.xlsx')}",
            "X-Total-Interest": f"{float(combined.total_interest):.2f}",
        },
    )


@app.post(
    "/v1/loans/prepayment:calc",
    tags=["prepayment"],
    responses={400: {"description": "Invalid loan or prepayment parameters"}},
)
@limiter.limit(config.DEFAULT_RATE_LIMIT)
def calc_prepayment(request: Request, body: PrepaymentRequest, _=Depends(require_api_key)) -> PrepaymentResponse:
    try:
        commercial, provident = resolve_tranches(body.to_params())
        result = simulate_prepayment(commercial, provident, body.years, body.method, from_wan(body.prepay_amount))
    except ValueError as e:
        logger.info("rejected prepayment calc: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    return PrepaymentResponse(
        total_interest_saved=float(result.total_interest_saved),
        baseline_interest=float(result.baseline_interest),
        total_interest=float(result.total_interest),
        payoff_year=result.payoff_year,
        schedule=[
            PrepaymentYearItem(
                year=row.year,
                remaining_principal=row.remaining_principal,
                next_month_payment=row.next_month_payment,
            )
            for row in result.schedule
        ],
    )


@app.post(
    "/v1/loans/prepayment:export-pdf",
    tags=["prepayment"],
    responses={400: {"description": "Invalid loan or prepayment parameters"}},
)
@limiter.limit(config.EXPORT_RATE_LIMIT)
def export_prepayment_pdf(request: Request, body: PrepaymentRequest, _=Depends(require_api_key)):
    """导出提前还款测算 PDF 报告。"""
    yearly_amount = from_wan(body.prepay_amount)
    try:
        commercial, provident = resolve_tranches(body.to_params())
        result = simulate_prepayment(commercial, provident, body.years, body.method, yearly_amount)
    except ValueError as e:
        logger.info("rejected prepayment export: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    pdf_bytes = prepayment_pdf(
        result,
        commercial=commercial,
        provident=provident,
        years=body.years,
        method=body.method,
        yearly_amount=yearly_amount,
    )
    _ensure_export_size(len(pdf_bytes))

    return StreamingResponse(
        BytesIO(pdf_bytes),
        media_type="application/pdf",
        headers={
            "Content-Disposition": "attachment; filename=prepayment_report.pdf; "
            f"filename*=UTF-8''{quote('提前还款测算报告.pdf')}",
            "X-Interest-Saved": f"{float(result.total_interest_saved):.2f}",
        },
    )


@app.post(
    "/v1/loans:commentary",
    tags=["loan"],
    responses={400: {"description": "Invalid loan parameters"}},
)
@limiter.limit(config.DEFAULT_RATE_LIMIT)
def loan_commentary(request: Request, body: CommentaryRequest, _=Depends(require_api_key)) -> CommentaryResponse:
    try:
        commercial, provident = resolve_tranches(body.to_params())
        result = calculate_loan(commercial, provident, body.years)[body.method]
    except ValueError as e:
        logger.info("rejected commentary request: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    household = Household(
        monthly_income=body.monthly_income,
        provident_monthly=body.provident_monthly,
        provident_balance=body.provident_balance,
    )
    commentary = generate_commentary(result, body.loan_type, body.method, household)
    return CommentaryResponse(commentary=commentary.text, available=commentary.available)
