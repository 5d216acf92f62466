import logging
from datetime import date as dt_date
from decimal import Decimal
from pathlib import Path

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from .aggregation import recent_transactions
from .auth import AuthService
from .db import init_db
from .logic import parse_amount, parse_date, validate_type
from .models import Transaction, User
from .service import BudgetService
from .settings import Settings, get_settings
from .store import DocumentStore

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


class LoginRequired(Exception):
    pass


def format_money(value) -> str:
    return f"{Decimal(value):,.2f}"


def _resolve_month(year: int | None, month: int | None, today: dt_date | None = None) -> tuple[int, int]:
    current = today or dt_date.today()
    resolved_year = current.year if year is None else year
    resolved_month = current.month - 1 if month is None else month
    if not 0 <= resolved_month <= 11:
        raise HTTPException(status_code=400, detail="month must be between 0 and 11")
    return resolved_year, resolved_month


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + month + delta
    return index // 12, index % 12


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)
    init_db(settings)
    logger.info("using database %s", settings.db_path)

    store = DocumentStore(settings.db_path)
    auth = AuthService(settings.db_path, session_max_age=settings.session_max_age)
    budget = BudgetService(store)

    app = FastAPI()
    app.state.settings = settings
    app.state.auth = auth
    app.state.budget = budget
    app.mount("/static", StaticFiles(directory=PACKAGE_DIR / "static"), name="static")
    templates = Jinja2Templates(directory=PACKAGE_DIR / "templates")
    templates.env.filters["money"] = format_money

    def session_user(request: Request) -> User | None:
        return auth.user_for_token(request.cookies.get(settings.session_cookie))

    def require_user(user: User | None = Depends(session_user)) -> User:
        if user is None:
            raise LoginRequired()
        return user

    @app.exception_handler(LoginRequired)
    def redirect_to_login(request: Request, exc: LoginRequired):
        return RedirectResponse(url="/login", status_code=303)

    def _login_redirect(token: str) -> RedirectResponse:
        response = RedirectResponse(url="/", status_code=303)
        response.set_cookie(
            settings.session_cookie,
            token,
            max_age=settings.session_max_age,
            httponly=True,
            samesite="lax",
        )
        return response

    def _transactions_context(user: User, **extra) -> dict:
        transactions = budget.get_transactions(user.id)
        context = {
            "user": user,
            "transactions": recent_transactions(transactions, len(transactions)),
            "categories": budget.get_categories(user.id),
            "error_message": "",
            "form": {"type": "expense"},
        }
        context.update(extra)
        return context

    def _render_transactions(request: Request, user: User, status_code: int = 200, **extra):
        return templates.TemplateResponse(
            request,
            "transactions.html",
            _transactions_context(user, **extra),
            status_code=status_code,
        )

    @app.get("/login", response_class=HTMLResponse)
    def login_page(request: Request):
        return templates.TemplateResponse(request, "login.html", {"error_message": ""})

    @app.post("/login", response_class=HTMLResponse)
    def login(
        request: Request,
        email: str = Form(default=""),
        password: str = Form(default=""),
    ):
        try:
            _, token = auth.login(email, password)
        except ValueError as exc:
            return templates.TemplateResponse(
                request,
                "login.html",
                {"error_message": str(exc), "email": email},
                status_code=401,
            )
        return _login_redirect(token)

    @app.get("/register", response_class=HTMLResponse)
    def register_page(request: Request):
        return templates.TemplateResponse(request, "register.html", {"error_message": ""})

    @app.post("/register", response_class=HTMLResponse)
    def register(
        request: Request,
        email: str = Form(default=""),
        password: str = Form(default=""),
        confirm_password: str = Form(default=""),
    ):
        try:
            if password != confirm_password:
                raise ValueError("passwords do not match")
            _, token = auth.register(email, password)
        except ValueError as exc:
            return templates.TemplateResponse(
                request,
                "register.html",
                {"error_message": str(exc), "email": email},
                status_code=400,
            )
        return _login_redirect(token)

    @app.post("/logout")
    def logout(request: Request):
        token = request.cookies.get(settings.session_cookie)
        if token:
            auth.logout(token)
        response = RedirectResponse(url="/login", status_code=303)
        response.delete_cookie(settings.session_cookie)
        return response

    @app.get("/", response_class=HTMLResponse)
    def dashboard(
        request: Request,
        year: int | None = None,
        month: int | None = None,
        user: User = Depends(require_user),
    ):
        resolved_year, resolved_month = _resolve_month(year, month)
        totals = budget.get_monthly_totals(user.id, resolved_year, resolved_month)
        by_category = sorted(
            budget.get_category_totals(user.id, resolved_year, resolved_month).items(),
            key=lambda item: (-item[1], item[0]),
        )
        prev_year, prev_month = _shift_month(resolved_year, resolved_month, -1)
        next_year, next_month = _shift_month(resolved_year, resolved_month, 1)
        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "user": user,
                "year": resolved_year,
                "month": resolved_month,
                "month_name": MONTH_NAMES[resolved_month],
                "total_income": totals["income"],
                "total_expense": totals["expense"],
                "balance": totals["income"] - totals["expense"],
                "by_category": by_category,
                "recent_transactions": budget.get_recent_transactions(
                    user.id, settings.recent_count
                ),
                "prev": {"year": prev_year, "month": prev_month},
                "next": {"year": next_year, "month": next_month},
            },
        )

    @app.get("/transactions", response_class=HTMLResponse)
    def transactions_page(request: Request, user: User = Depends(require_user)):
        return _render_transactions(request, user)

    @app.post("/transactions", response_class=HTMLResponse)
    def create_transaction(
        request: Request,
        amount: str = Form(default=""),
        description: str = Form(default=""),
        category: str = Form(default=""),
        date: str = Form(default=""),
        type: str = Form(default="expense"),
        user: User = Depends(require_user),
    ):
        form = {
            "amount": amount,
            "description": description,
            "category": category,
            "date": date,
            "type": type,
        }
        try:
            if not all(value.strip() for value in form.values()):
                raise ValueError("please fill in all fields")
            txn = Transaction(
                user_id=user.id,
                amount=parse_amount(amount),
                description=description.strip(),
                category=category.strip(),
                date=parse_date(date),
                type=validate_type(type),
            )
        except ValueError as exc:
            return _render_transactions(
                request, user, status_code=400, error_message=str(exc), form=form
            )

        budget.add_transaction(txn)
        if request.headers.get("HX-Request") == "true":
            return templates.TemplateResponse(
                request,
                "_transactions_table.html",
                _transactions_context(user),
            )
        return RedirectResponse(url="/transactions", status_code=303)

    @app.post("/transactions/{txn_id}/delete", response_class=HTMLResponse)
    def delete_transaction(
        txn_id: str,
        request: Request,
        user: User = Depends(require_user),
    ):
        txn = budget.get_transaction(txn_id)
        if txn is None or txn.user_id != user.id:
            raise HTTPException(status_code=404, detail="transaction not found")
        budget.delete_transaction(txn_id)
        if request.headers.get("HX-Request") == "true":
            return templates.TemplateResponse(
                request,
                "_transactions_table.html",
                _transactions_context(user),
            )
        return RedirectResponse(url="/transactions", status_code=303)

    @app.get("/api/summary")
    def summary(
        year: int | None = None,
        month: int | None = None,
        user: User | None = Depends(session_user),
    ):
        if user is None:
            raise HTTPException(status_code=401, detail="login required")
        resolved_year, resolved_month = _resolve_month(year, month)
        totals = budget.get_monthly_totals(user.id, resolved_year, resolved_month)
        categories = budget.get_category_totals(user.id, resolved_year, resolved_month)
        return JSONResponse(
            {
                "year": resolved_year,
                "month": resolved_month,
                "income": str(totals["income"]),
                "expense": str(totals["expense"]),
                "categories": {name: str(total) for name, total in categories.items()},
            }
        )

    return app
