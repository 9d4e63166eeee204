"""
Case workflow state machine.

This module is the only place that changes cases.current_state.

    enquiry → estimation → quotation → order → production → delivery → closed

Only the single next step is allowed; closed is terminal. Every change,
including case creation, appends a row to case_state_transitions, so the
log is gapless from {None → enquiry} onwards.

Concurrency: the state change is a conditional UPDATE
(… WHERE id = :id AND current_state = :from). If another request moved the
case first the UPDATE touches no row and the transition is rejected.
"""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from dateutil.relativedelta import relativedelta
from loguru import logger
from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, func, select

from app.core.config import settings
from app.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from app.models.case import Case, CaseStateTransition, DocumentSequence, SalesEnquiry


class CaseState(str, Enum):
    ENQUIRY = "enquiry"
    ESTIMATION = "estimation"
    QUOTATION = "quotation"
    ORDER = "order"
    PRODUCTION = "production"
    DELIVERY = "delivery"
    CLOSED = "closed"


CASE_STATE_ORDER: tuple[CaseState, ...] = tuple(CaseState)

_NEXT_STATE: dict[CaseState, Optional[CaseState]] = {
    state: (CASE_STATE_ORDER[i + 1] if i + 1 < len(CASE_STATE_ORDER) else None)
    for i, state in enumerate(CASE_STATE_ORDER)
}


def _as_state(value) -> CaseState:
    try:
        return CaseState(value)
    except ValueError:
        raise ValidationError(
            f"Unknown case state {value!r}; expected one of "
            f"{', '.join(s.value for s in CASE_STATE_ORDER)}"
        )


def next_state(current) -> Optional[CaseState]:
    """Immediate successor of current, or None when current is closed."""
    return _NEXT_STATE[_as_state(current)]


# ── Document numbers ──────────────────────────────────────────────────────────


def financial_year(today: Optional[date] = None) -> str:
    """Indian financial year (April–March) as 'YYyy', e.g. 2025-26 → '2526'."""
    today = today or date.today()
    start = today.year if today.month >= 4 else today.year - 1
    return f"{start % 100:02d}{(start + 1) % 100:02d}"


def next_document_number(
    session: Session,
    document_type: str,
    fy: Optional[str] = None,
) -> str:
    """
    Reserve the next number for document_type in the current financial year.

    The counter is bumped with a single UPDATE ... SET last_sequence =
    last_sequence + 1, so concurrent callers never read the same value.
    The first number of a year inserts the row inside a savepoint; losing
    that insert to another transaction falls back to the UPDATE.

    Does not commit: the sequence bump belongs to the caller's transaction.
    """
    fy = fy or financial_year()
    match = (
        DocumentSequence.document_type == document_type,
        DocumentSequence.financial_year == fy,
    )
    bump = (
        update(DocumentSequence)
        .where(*match)
        .values(last_sequence=DocumentSequence.last_sequence + 1, updated_at=datetime.utcnow())
    )

    if session.execute(bump).rowcount == 0:
        try:
            with session.begin_nested():
                session.add(
                    DocumentSequence(document_type=document_type, financial_year=fy, last_sequence=1)
                )
        except IntegrityError:
            session.execute(bump)

    last = session.exec(select(DocumentSequence.last_sequence).where(*match)).one()
    return f"{settings.DOCUMENT_PREFIX}/{document_type}/{fy}/{last:03d}"


# ── Read models ───────────────────────────────────────────────────────────────


class StateCount(BaseModel):
    state: str
    count: int


class CaseStatistics(BaseModel):
    by_state: list[StateCount]
    total_cases: int
    active_cases: int
    closed_last_month: int


# ── Service ───────────────────────────────────────────────────────────────────


class CaseService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_case(self, case_id: int) -> Case:
        case = self.session.get(Case, case_id)
        if case is None:
            raise NotFoundError(f"Case {case_id} not found")
        return case

    def get_case_by_number(self, case_number: str) -> Case:
        case = self.session.exec(select(Case).where(Case.case_number == case_number)).first()
        if case is None:
            raise NotFoundError(f"Case {case_number} not found")
        return case

    def create_case(
        self,
        client_name: str,
        project_name: str,
        description: Optional[str] = None,
        customer_state: Optional[str] = None,
        assigned_to: Optional[int] = None,
        actor_id: Optional[int] = None,
    ) -> Case:
        """
        Record a sales enquiry and open its case.

        Enquiry, case, initial transition and the enquiry → case link are
        committed together or not at all.
        """
        if not (client_name or "").strip() or not (project_name or "").strip():
            raise ValidationError("client_name and project_name are required")

        try:
            enquiry = SalesEnquiry(
                client_name=client_name.strip(),
                customer_state=customer_state,
                project_name=project_name.strip(),
                description=description,
                created_by=actor_id,
            )
            self.session.add(enquiry)
            self.session.flush()

            case = Case(
                case_number=next_document_number(self.session, "C"),
                enquiry_id=enquiry.id,
                current_state=CaseState.ENQUIRY.value,
                client_name=enquiry.client_name,
                project_name=enquiry.project_name,
                requirements=description,
                assigned_to=assigned_to,
                created_by=actor_id,
            )
            self.session.add(case)
            self.session.flush()

            self.session.add(
                CaseStateTransition(
                    case_id=case.id,
                    from_state=None,
                    to_state=CaseState.ENQUIRY.value,
                    notes="Case created from sales enquiry",
                    created_by=actor_id,
                )
            )
            enquiry.case_id = case.id
            self.session.add(enquiry)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(case)
        logger.info(f"Created case {case.case_number} for {case.client_name}")
        return case

    def transition(
        self,
        case_id: int,
        requested_to_state,
        actor_id: Optional[int] = None,
        notes: Optional[str] = None,
        reference_id: Optional[int] = None,
    ) -> CaseStateTransition:
        case = self.get_case(case_id)
        from_state = _as_state(case.current_state)
        to_state = _as_state(requested_to_state)
        expected = next_state(from_state)

        if expected is None:
            raise InvalidTransitionError(
                f"Case {case.case_number} is {from_state.value}; no further transitions allowed"
            )
        if to_state != expected:
            raise InvalidTransitionError(
                f"Invalid state transition from {from_state.value} to {to_state.value}. "
                f"Valid transition from {from_state.value}: {expected.value}"
            )

        now = datetime.utcnow()
        try:
            result = self.session.execute(
                update(Case)
                .where(Case.id == case_id, Case.current_state == from_state.value)
                .values(current_state=to_state.value, updated_at=now)
            )
            if result.rowcount != 1:
                raise InvalidTransitionError(
                    f"Case {case.case_number} changed state concurrently; "
                    f"expected {from_state.value}"
                )

            record = CaseStateTransition(
                case_id=case_id,
                from_state=from_state.value,
                to_state=to_state.value,
                notes=notes,
                reference_id=reference_id,
                created_by=actor_id,
                created_at=now,
            )
            self.session.add(record)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(record)
        self.session.refresh(case)
        logger.info(
            f"Case {case.case_number}: {from_state.value} → {to_state.value} (by {actor_id})"
        )
        return record

    def update_case(
        self,
        case_id: int,
        assigned_to: Optional[int],
        notes: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Case:
        """
        Reassign a case. A note, when given, is logged as a same-state row
        (from_state == to_state == current state); current_state is untouched.
        """
        case = self.get_case(case_id)
        now = datetime.utcnow()
        try:
            self.session.execute(
                update(Case)
                .where(Case.id == case_id)
                .values(assigned_to=assigned_to, updated_at=now)
            )
            if notes and notes.strip():
                # state as of this transaction, not as first read
                current = self.session.exec(
                    select(Case.current_state).where(Case.id == case_id)
                ).one()
                self.session.add(
                    CaseStateTransition(
                        case_id=case_id,
                        from_state=current,
                        to_state=current,
                        notes=notes.strip(),
                        created_by=actor_id,
                        created_at=now,
                    )
                )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(case)
        logger.info(f"Case {case.case_number} assigned to {assigned_to} (by {actor_id})")
        return case

    def search_cases(self, q: str, limit: int = 50) -> list[Case]:
        """Substring match on case number, project or client; latest activity first."""
        term = (q or "").strip()
        if not term:
            raise ValidationError("Search query is required")
        pattern = f"%{term}%"
        stmt = (
            select(Case)
            .where(
                col(Case.case_number).ilike(pattern)
                | col(Case.project_name).ilike(pattern)
                | col(Case.client_name).ilike(pattern)
            )
            .order_by(col(Case.updated_at).desc(), col(Case.id).desc())
            .limit(limit)
        )
        return list(self.session.exec(stmt).all())

    def history(self, case_id: int) -> list[CaseStateTransition]:
        self.get_case(case_id)
        stmt = (
            select(CaseStateTransition)
            .where(CaseStateTransition.case_id == case_id)
            .order_by(CaseStateTransition.created_at, CaseStateTransition.id)
        )
        return list(self.session.exec(stmt).all())

    def list_cases(self, state: Optional[str] = None) -> list[Case]:
        stmt = select(Case)
        if state:
            stmt = stmt.where(Case.current_state == _as_state(state).value)
        stmt = stmt.order_by(col(Case.created_at).desc(), col(Case.id).desc())
        return list(self.session.exec(stmt).all())

    def statistics(self, today: Optional[date] = None) -> CaseStatistics:
        """Counts derived from cases.current_state at query time."""
        rows = self.session.exec(
            select(Case.current_state, func.count()).group_by(Case.current_state)
        ).all()
        counts = {state: int(n) for state, n in rows}

        cutoff = datetime.combine(today or date.today(), datetime.min.time()) - relativedelta(months=1)
        closed_recent = self.session.exec(
            select(func.count()).select_from(Case).where(
                Case.current_state == CaseState.CLOSED.value,
                Case.updated_at >= cutoff,
            )
        ).one()

        total = sum(counts.values())
        return CaseStatistics(
            by_state=[
                StateCount(state=s.value, count=counts.get(s.value, 0))
                for s in CASE_STATE_ORDER
            ],
            total_cases=total,
            active_cases=total - counts.get(CaseState.CLOSED.value, 0),
            closed_last_month=int(closed_recent or 0),
        )
