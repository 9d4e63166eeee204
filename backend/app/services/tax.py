"""
GST tax engine.

Two pieces:
  TaxConfigStore      – the tax_config table: known states and the single home state.
  TaxSplitCalculator  – decides CGST+SGST (intra-state) vs IGST (inter-state)
                        and computes per-line tax amounts.

Rounding: every component amount is rounded half-up to 2 decimals on its own,
and total_tax_amount is the sum of the rounded components, so an invoice's
CGST + SGST + IGST columns always add up to its tax total.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Callable, Optional, Union

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import update
from sqlmodel import Session, col, func, select

from app.core.config import settings
from app.core.errors import ConfigError, NotFoundError, ValidationError
from app.models.tax import TaxState

_CENT = Decimal("0.01")

# (state_name, GST state code) – states and union territories
INDIAN_STATES: list[tuple[str, str]] = [
    ("Andhra Pradesh", "AP"),
    ("Arunachal Pradesh", "AR"),
    ("Assam", "AS"),
    ("Bihar", "BR"),
    ("Chhattisgarh", "CG"),
    ("Goa", "GA"),
    ("Gujarat", "GJ"),
    ("Haryana", "HR"),
    ("Himachal Pradesh", "HP"),
    ("Jharkhand", "JH"),
    ("Karnataka", "KA"),
    ("Kerala", "KL"),
    ("Madhya Pradesh", "MP"),
    ("Maharashtra", "MH"),
    ("Manipur", "MN"),
    ("Meghalaya", "ML"),
    ("Mizoram", "MZ"),
    ("Nagaland", "NL"),
    ("Odisha", "OR"),
    ("Punjab", "PB"),
    ("Rajasthan", "RJ"),
    ("Sikkim", "SK"),
    ("Tamil Nadu", "TN"),
    ("Telangana", "TS"),
    ("Tripura", "TR"),
    ("Uttar Pradesh", "UP"),
    ("Uttarakhand", "UK"),
    ("West Bengal", "WB"),
    ("Andaman and Nicobar Islands", "AN"),
    ("Chandigarh", "CH"),
    ("Dadra and Nagar Haveli and Daman and Diu", "DN"),
    ("Delhi", "DL"),
    ("Jammu and Kashmir", "JK"),
    ("Ladakh", "LA"),
    ("Lakshadweep", "LD"),
    ("Puducherry", "PY"),
]


# ── Value types ───────────────────────────────────────────────────────────────


class TaxKind(str, Enum):
    INTRA_STATE = "intra_state"
    INTER_STATE = "inter_state"


class TaxSplit(BaseModel):
    cgst_percent: float
    sgst_percent: float
    igst_percent: float
    total_percent: float
    kind: TaxKind


class LineItemTax(BaseModel):
    base_amount: float
    split: TaxSplit
    cgst_amount: float
    sgst_amount: float
    igst_amount: float
    total_tax_amount: float
    total_amount: float
    home_state: str
    customer_state: str
    # True when the home state or rate came from TaxFallbackPolicy
    fallback_applied: bool = False


@dataclass(frozen=True)
class TaxFallbackPolicy:
    """Defaults used when no home state is configured. Opt-in only."""

    home_state: str = "Karnataka"
    gross_rate: float = 18.0


# ── Helpers ───────────────────────────────────────────────────────────────────


def _normalize_state(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def _to_decimal(value: Union[float, int, str, Decimal]) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _component_amount(base: Decimal, percent: float) -> Decimal:
    """base × percent / 100, rounded half-up to paise."""
    return (base * _to_decimal(percent) / Decimal(100)).quantize(_CENT, rounding=ROUND_HALF_UP)


def _base_amount(value) -> Decimal:
    """Line amount as Decimal; NaN, ±Infinity and non-numbers are rejected."""
    try:
        base = _to_decimal(value)
    except (ArithmeticError, TypeError, ValueError):
        raise ValidationError(f"Amount must be a number, got {value!r}")
    if not base.is_finite():
        raise ValidationError(f"Amount must be a finite number, got {value!r}")
    return base


def validate_gst_rate(rate) -> bool:
    """True when rate is a finite number in [0, 100]."""
    try:
        value = float(rate)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and 0.0 <= value <= 100.0


# ── Pure split ────────────────────────────────────────────────────────────────


def compute_split(gross_rate_percent: float, customer_state: str, home_state: str) -> TaxSplit:
    """
    Split a gross GST rate for a customer in customer_state.

    Same state (trimmed, case-insensitive) → CGST = SGST = rate / 2.
    Different state → IGST = rate.
    """
    if not validate_gst_rate(gross_rate_percent):
        raise ValidationError(
            f"GST rate must be between 0 and 100, got {gross_rate_percent!r}"
        )
    rate = float(gross_rate_percent)

    if _normalize_state(customer_state) == _normalize_state(home_state):
        half = rate / 2
        return TaxSplit(
            cgst_percent=half,
            sgst_percent=half,
            igst_percent=0.0,
            total_percent=rate,
            kind=TaxKind.INTRA_STATE,
        )
    return TaxSplit(
        cgst_percent=0.0,
        sgst_percent=0.0,
        igst_percent=rate,
        total_percent=rate,
        kind=TaxKind.INTER_STATE,
    )


# ── Calculator ────────────────────────────────────────────────────────────────


class TaxSplitCalculator:
    """
    Line-item GST calculator bound to an explicit home state.

    home_state is either the state name itself or a zero-argument callable
    returning it (typically TaxConfigStore.get_home_state). When the callable
    raises ConfigError the error propagates, unless a TaxFallbackPolicy was
    given, in which case the policy's home state is used and a warning logged.
    """

    def __init__(
        self,
        home_state: Union[str, Callable[[], str]],
        fallback: Optional[TaxFallbackPolicy] = None,
    ) -> None:
        self._home_state = home_state
        self.fallback = fallback

    def resolve_home_state(self) -> tuple[str, bool]:
        """Return (home_state, fallback_applied)."""
        if isinstance(self._home_state, str):
            return self._home_state, False
        try:
            return self._home_state(), False
        except ConfigError as exc:
            if self.fallback is None:
                raise
            logger.warning(
                f"Home state lookup failed ({exc.message}); "
                f"falling back to {self.fallback.home_state}"
            )
            return self.fallback.home_state, True

    def compute_split(self, gross_rate_percent: float, customer_state: str) -> TaxSplit:
        home_state, _ = self.resolve_home_state()
        return compute_split(gross_rate_percent, customer_state, home_state)

    def compute_line_item_tax(
        self,
        base_amount: Union[float, Decimal],
        gross_rate_percent: Optional[float],
        customer_state: str,
    ) -> LineItemTax:
        home_state, fallback_applied = self.resolve_home_state()

        if gross_rate_percent is None:
            if self.fallback is None:
                raise ValidationError("GST rate is required")
            logger.warning(
                f"No GST rate supplied; falling back to {self.fallback.gross_rate}%"
            )
            gross_rate_percent = self.fallback.gross_rate
            fallback_applied = True

        base = _base_amount(base_amount)
        split = compute_split(gross_rate_percent, customer_state, home_state)

        cgst = _component_amount(base, split.cgst_percent)
        sgst = _component_amount(base, split.sgst_percent)
        igst = _component_amount(base, split.igst_percent)
        total_tax = cgst + sgst + igst

        return LineItemTax(
            base_amount=float(base),
            split=split,
            cgst_amount=float(cgst),
            sgst_amount=float(sgst),
            igst_amount=float(igst),
            total_tax_amount=float(total_tax),
            total_amount=float(base + total_tax),
            home_state=home_state,
            customer_state=customer_state,
            fallback_applied=fallback_applied,
        )


# ── Config store ──────────────────────────────────────────────────────────────


class TaxConfigStore:
    """Read/write access to tax_config within one session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _find(self, name: str) -> Optional[TaxState]:
        stmt = select(TaxState).where(
            func.lower(TaxState.state_name) == _normalize_state(name),
            TaxState.is_active == True,  # noqa: E712
        )
        return self.session.exec(stmt).first()

    def list_states(self) -> list[TaxState]:
        stmt = (
            select(TaxState)
            .where(TaxState.is_active == True)  # noqa: E712
            .order_by(col(TaxState.is_home_state).desc(), TaxState.state_name)
        )
        return list(self.session.exec(stmt).all())

    def add_state(self, name: str, code: str) -> TaxState:
        name = (name or "").strip()
        code = (code or "").strip().upper()
        if not name or not code:
            raise ValidationError("State name and code are required")
        clash = self.session.exec(
            select(TaxState).where(
                (func.lower(TaxState.state_name) == name.lower())
                | (TaxState.state_code == code)
            )
        ).first()
        if clash:
            raise ValidationError(f"State {name!r} / code {code!r} already exists")

        state = TaxState(state_name=name, state_code=code)
        self.session.add(state)
        self.session.commit()
        self.session.refresh(state)
        logger.info(f"Added tax state {name} ({code})")
        return state

    def get_home_state(self) -> str:
        stmt = select(TaxState).where(
            TaxState.is_home_state == True,  # noqa: E712
            TaxState.is_active == True,  # noqa: E712
        )
        home = self.session.exec(stmt).first()
        if home is None:
            raise ConfigError("No home state configured in tax_config")
        return home.state_name

    def set_home_state(self, name: str) -> TaxState:
        """Make name the only home state. Both updates commit together."""
        target = self._find(name)
        if target is None:
            raise NotFoundError(f"Unknown state: {name!r}")

        now = datetime.utcnow()
        try:
            self.session.execute(
                update(TaxState)
                .where(TaxState.is_home_state == True)  # noqa: E712
                .values(is_home_state=False, updated_at=now)
            )
            self.session.execute(
                update(TaxState)
                .where(TaxState.id == target.id)
                .values(is_home_state=True, updated_at=now)
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(target)
        logger.info(f"Home state set to {target.state_name}")
        return target

    def seed_states(self, default_home: Optional[str] = None) -> int:
        """Load INDIAN_STATES into an empty table. Returns rows inserted."""
        existing = self.session.exec(select(func.count()).select_from(TaxState)).one()
        if existing:
            return 0

        home = _normalize_state(default_home)
        for name, code in INDIAN_STATES:
            self.session.add(
                TaxState(
                    state_name=name,
                    state_code=code,
                    is_home_state=_normalize_state(name) == home,
                )
            )
        self.session.commit()
        logger.info(f"Seeded {len(INDIAN_STATES)} tax states (home: {default_home})")
        return len(INDIAN_STATES)


def fallback_policy_from_settings() -> Optional[TaxFallbackPolicy]:
    if not settings.TAX_FALLBACK_ENABLED:
        return None
    return TaxFallbackPolicy(
        home_state=settings.DEFAULT_HOME_STATE,
        gross_rate=settings.DEFAULT_GST_RATE,
    )


def calculator_for(session: Session) -> TaxSplitCalculator:
    """Calculator reading the home state from tax_config on each call."""
    store = TaxConfigStore(session)
    return TaxSplitCalculator(store.get_home_state, fallback=fallback_policy_from_settings())
