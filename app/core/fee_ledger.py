"""Fee ledger: installment schedule, payments and audit trail for one student.

Everything in this module is pure. Each mutating operation works on a deep copy
of the ledger, recomputes the derived ``remaining_fees``, runs the consistency
check and returns a ``LedgerChange``. The caller persists the new ledger and
the appended audit entries in a single transaction, or nothing at all.
"""

import calendar
import copy
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from app.core.enums import FeePaymentStatus
from app.core.exceptions import ConsistencyViolation, NotFoundError, ValidationError

MONEY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0.00")
MIN_INSTALLMENTS = 1
MAX_INSTALLMENTS = 12


def to_money(value: Any) -> Decimal:
    """Coerce to a two-place Decimal. Floats go through ``str`` to avoid binary noise."""
    if value is None:
        return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"Invalid monetary amount: {value!r}")
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def add_months(dt: date, months: int) -> date:
    """Return ``dt`` shifted by ``months`` calendar months, day clamped to month end."""
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Installment:
    amount: Decimal
    due_date: date
    paid: bool = False
    paid_amount: Optional[Decimal] = None  # only while partially paid
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def contribution(self) -> Decimal:
        """What this installment adds to the total paid."""
        if self.paid:
            return self.amount
        return self.paid_amount or ZERO

    @property
    def outstanding(self) -> Decimal:
        if self.paid:
            return ZERO
        return self.amount - (self.paid_amount or ZERO)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "amount": str(self.amount),
            "due_date": self.due_date.isoformat(),
            "paid": self.paid,
            "paid_amount": str(self.paid_amount) if self.paid_amount is not None else None,
            "payment_date": self.payment_date.isoformat() if self.payment_date else None,
            "notes": self.notes,
        }


@dataclass
class AuditEntry:
    action: str
    description: str
    actor_id: Optional[UUID]
    prior_snapshot: Optional[Dict[str, Any]]
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass
class FeeLedger:
    """
    One student's fee ledger.

    ``installments`` is kept ordered by ``due_date`` (ties keep schedule order).
    ``audit_log`` only holds entries appended since the ledger was loaded;
    persisted history lives with the storage collaborator.
    """

    total_fees: Decimal
    installment_count: int
    installments: List[Installment] = field(default_factory=list)
    advance_payment: Decimal = ZERO
    remaining_fees: Decimal = ZERO
    audit_log: List[AuditEntry] = field(default_factory=list)

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe copy of the ledger state, without the audit log."""
        return {
            "total_fees": str(self.total_fees),
            "installment_count": self.installment_count,
            "advance_payment": str(self.advance_payment),
            "remaining_fees": str(self.remaining_fees),
            "installments": [inst.snapshot() for inst in self.installments],
        }


@dataclass
class LedgerSummary:
    total_fees: Decimal
    total_paid: Decimal
    remaining_fees: Decimal
    advance_payment: Decimal
    payment_status: FeePaymentStatus


@dataclass
class LedgerChange:
    ledger: FeeLedger
    entry: Optional[AuditEntry] = None

    @property
    def changed(self) -> bool:
        return self.entry is not None


# --- Schedule ---
def even_split(total_fees: Any, count: int) -> List[Decimal]:
    """Split ``total_fees`` into ``count`` whole-unit parts; remainder goes to the first."""
    total = to_money(total_fees)
    if total < 0:
        raise ValidationError("Total fees cannot be negative")
    if count < MIN_INSTALLMENTS:
        raise ValidationError("Installment count must be at least 1")
    base = (total / count).to_integral_value(rounding=ROUND_FLOOR)
    first = total - base * (count - 1)
    return [to_money(first)] + [to_money(base)] * (count - 1)


def regenerate_schedule(
    previous: List[Installment],
    total_fees: Any,
    count: int,
    joining_date: date,
) -> List[Installment]:
    """
    Build a fresh even-split schedule starting at ``joining_date``.
    Payment state (paid, paid_amount, payment_date, notes) survives by index.
    """
    schedule: List[Installment] = []
    for index, amount in enumerate(even_split(total_fees, count)):
        inst = Installment(amount=amount, due_date=add_months(joining_date, index))
        if index < len(previous):
            prior = previous[index]
            inst.paid = prior.paid
            inst.paid_amount = prior.paid_amount
            inst.payment_date = prior.payment_date
            inst.notes = prior.notes
            if inst.paid_amount is not None and inst.paid_amount == inst.amount:
                inst.paid = True
                inst.paid_amount = None
        schedule.append(inst)
    return schedule


def total_paid(ledger: FeeLedger) -> Decimal:
    return sum((inst.contribution for inst in ledger.installments), ZERO) + ledger.advance_payment


def recompute_remaining(ledger: FeeLedger) -> Decimal:
    """The only place ``remaining_fees`` is assigned."""
    ledger.remaining_fees = to_money(max(ZERO, ledger.total_fees - total_paid(ledger)))
    return ledger.remaining_fees


def check_consistency(ledger: FeeLedger) -> None:
    """Raise ConsistencyViolation when a ledger invariant does not hold."""
    if ledger.total_fees < 0:
        raise ConsistencyViolation("Total fees cannot be negative")
    if ledger.advance_payment < 0:
        raise ConsistencyViolation("Advance payment cannot be negative")
    if ledger.installment_count != len(ledger.installments):
        raise ConsistencyViolation(
            f"Installment count {ledger.installment_count} does not match "
            f"{len(ledger.installments)} scheduled installments"
        )
    scheduled = sum((inst.amount for inst in ledger.installments), ZERO)
    if scheduled != ledger.total_fees:
        raise ConsistencyViolation(
            f"Installments add up to {scheduled}, expected {ledger.total_fees}"
        )
    for number, inst in enumerate(ledger.installments, start=1):
        if inst.amount < 0:
            raise ConsistencyViolation(f"Installment {number} has a negative amount")
        if inst.paid_amount is None:
            continue
        if inst.paid:
            raise ConsistencyViolation(f"Installment {number} is paid but still carries a partial amount")
        if inst.paid_amount < 0 or inst.paid_amount > inst.amount:
            raise ConsistencyViolation(
                f"Installment {number} partial payment {inst.paid_amount} exceeds amount {inst.amount}"
            )
    installments_paid = sum((inst.contribution for inst in ledger.installments), ZERO)
    if ledger.total_fees - installments_paid < 0:
        raise ConsistencyViolation("Remaining fees would become negative")
    if ledger.remaining_fees != to_money(max(ZERO, ledger.total_fees - total_paid(ledger))):
        raise ConsistencyViolation("Remaining fees do not match the recorded payments")


def payment_status(ledger: FeeLedger) -> FeePaymentStatus:
    if ledger.remaining_fees == 0:
        return FeePaymentStatus.FULLY_PAID
    if total_paid(ledger) == 0:
        return FeePaymentStatus.NOT_PAID
    return FeePaymentStatus.PARTIALLY_PAID


def get_summary(ledger: FeeLedger) -> LedgerSummary:
    return LedgerSummary(
        total_fees=ledger.total_fees,
        total_paid=to_money(total_paid(ledger)),
        remaining_fees=ledger.remaining_fees,
        advance_payment=ledger.advance_payment,
        payment_status=payment_status(ledger),
    )


def create_ledger(
    total_fees: Any,
    installment_count: int,
    joining_date: date,
    actor_id: Optional[UUID] = None,
) -> FeeLedger:
    """New ledger with an even split starting at the joining date."""
    _validate_count(installment_count)
    total = to_money(total_fees)
    if total < 0:
        raise ValidationError("Total fees cannot be negative")
    ledger = FeeLedger(
        total_fees=total,
        installment_count=installment_count,
        installments=regenerate_schedule([], total, installment_count, joining_date),
    )
    recompute_remaining(ledger)
    check_consistency(ledger)
    ledger.audit_log.append(
        AuditEntry(
            action="CREATE_LEDGER",
            description=f"Ledger opened with total fees {total} over {installment_count} installments",
            actor_id=actor_id,
            prior_snapshot=None,
        )
    )
    return ledger


# --- Operations ---
def _validate_count(count: int) -> None:
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValidationError("Installment count must be an integer")
    if not MIN_INSTALLMENTS <= count <= MAX_INSTALLMENTS:
        raise ValidationError(
            f"Installment count must be between {MIN_INSTALLMENTS} and {MAX_INSTALLMENTS}"
        )


def _installment_at(ledger: FeeLedger, index: int) -> Installment:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(ledger.installments):
        raise NotFoundError(f"Installment index {index} does not exist")
    return ledger.installments[index]


def _mutate(
    ledger: FeeLedger,
    action: str,
    actor_id: Optional[UUID],
    apply: Callable[[FeeLedger], Optional[str]],
) -> LedgerChange:
    """Run ``apply`` on a copy; ``None`` from ``apply`` means nothing changed."""
    prior = ledger.snapshot()
    working = copy.deepcopy(ledger)
    description = apply(working)
    if description is None:
        return LedgerChange(ledger=ledger)
    recompute_remaining(working)
    check_consistency(working)
    entry = AuditEntry(
        action=action,
        description=description,
        actor_id=actor_id,
        prior_snapshot=prior,
    )
    working.audit_log.append(entry)
    return LedgerChange(ledger=working, entry=entry)


def set_total_fees(
    ledger: FeeLedger,
    new_total: Any,
    joining_date: date,
    actor_id: Optional[UUID] = None,
) -> LedgerChange:
    """Re-split over the current count. Re-sending the current total changes nothing."""
    total = to_money(new_total)
    if total < 0:
        raise ValidationError("Total fees cannot be negative")

    def apply(working: FeeLedger) -> Optional[str]:
        previous_total = working.total_fees
        if total == previous_total:
            return None
        working.total_fees = total
        working.installments = regenerate_schedule(
            working.installments, total, working.installment_count, joining_date
        )
        return f"Total fees changed from {previous_total} to {total}"

    return _mutate(ledger, "SET_TOTAL_FEES", actor_id, apply)


def set_installment_count(
    ledger: FeeLedger,
    count: int,
    joining_date: date,
    actor_id: Optional[UUID] = None,
) -> LedgerChange:
    """Re-split into ``count`` installments. Re-sending the current count changes nothing."""
    _validate_count(count)

    def apply(working: FeeLedger) -> Optional[str]:
        previous_count = working.installment_count
        if count == previous_count:
            return None
        working.installment_count = count
        working.installments = regenerate_schedule(
            working.installments, working.total_fees, count, joining_date
        )
        return f"Installment count changed from {previous_count} to {count}"

    return _mutate(ledger, "SET_INSTALLMENT_COUNT", actor_id, apply)


def mark_installment_paid(
    ledger: FeeLedger,
    index: int,
    payment_date: Optional[datetime] = None,
    notes: Optional[str] = None,
    actor_id: Optional[UUID] = None,
) -> LedgerChange:
    _installment_at(ledger, index)

    def apply(working: FeeLedger) -> Optional[str]:
        inst = working.installments[index]
        if inst.paid:
            return None
        inst.paid = True
        inst.paid_amount = None
        inst.payment_date = payment_date or _utcnow()
        if notes:
            inst.notes = notes
        return f"Installment {index + 1} of {len(working.installments)} ({inst.amount}) marked as paid"

    return _mutate(ledger, "MARK_INSTALLMENT_PAID", actor_id, apply)


def apply_payment_to_installment(
    ledger: FeeLedger,
    index: int,
    paid_amount: Any,
    payment_date: Optional[datetime] = None,
    notes: Optional[str] = None,
    actor_id: Optional[UUID] = None,
) -> LedgerChange:
    """
    Pay against a single installment.

    A payment equal to the outstanding balance settles it. A smaller payment
    splits it: the installment shrinks to the settled amount and is marked
    paid, and a new unpaid installment for the rest is inserted right after
    it, due one month later.
    """
    target = _installment_at(ledger, index)
    amount = to_money(paid_amount)
    if target.paid:
        raise ValidationError(f"Installment {index + 1} is already paid")
    if amount <= 0 or amount > target.outstanding:
        raise ValidationError(
            f"Paid amount must be greater than 0 and at most {target.outstanding}"
        )

    def apply(working: FeeLedger) -> str:
        inst = working.installments[index]
        outstanding = inst.outstanding
        paid_on = payment_date or _utcnow()
        if amount == outstanding:
            inst.paid = True
            inst.paid_amount = None
            inst.payment_date = paid_on
            if notes:
                inst.notes = notes
            return f"Payment of {amount} settled installment {index + 1}"

        settled = (inst.paid_amount or ZERO) + amount
        remainder = inst.amount - settled
        inst.amount = settled
        inst.paid = True
        inst.paid_amount = None
        inst.payment_date = paid_on
        if notes:
            inst.notes = notes
        working.installments.insert(
            index + 1,
            Installment(amount=remainder, due_date=add_months(inst.due_date, 1)),
        )
        # stable: the new row stays ahead of rows sharing its due date
        working.installments.sort(key=lambda item: item.due_date)
        working.installment_count = len(working.installments)
        return (
            f"Partial payment of {amount} on installment {index + 1}; "
            f"remaining {remainder} moved to a new installment due {add_months(inst.due_date, 1).isoformat()}"
        )

    return _mutate(ledger, "INSTALLMENT_PAYMENT", actor_id, apply)


def apply_custom_payment(
    ledger: FeeLedger,
    amount: Any,
    payment_date: Optional[datetime] = None,
    notes: Optional[str] = None,
    actor_id: Optional[UUID] = None,
) -> LedgerChange:
    """Allocate a lump sum oldest-due first; whatever is left becomes advance payment."""
    payment = to_money(amount)
    if payment <= 0:
        raise ValidationError("Payment amount must be greater than 0")

    def apply(working: FeeLedger) -> str:
        paid_on = payment_date or _utcnow()
        left = payment
        allocations: List[str] = []
        order = sorted(
            range(len(working.installments)),
            key=lambda i: (working.installments[i].due_date, i),
        )
        for i in order:
            if left <= 0:
                break
            inst = working.installments[i]
            outstanding = inst.outstanding
            if outstanding <= 0:
                continue
            applied = min(outstanding, left)
            left -= applied
            if applied == outstanding:
                inst.paid = True
                inst.paid_amount = None
                allocations.append(f"installment {i + 1}: {applied} (paid)")
            else:
                inst.paid_amount = (inst.paid_amount or ZERO) + applied
                allocations.append(f"installment {i + 1}: {applied} (partial)")
            inst.payment_date = paid_on
            if notes:
                inst.notes = notes

        description = f"Custom payment of {payment}"
        if allocations:
            description += " allocated to " + ", ".join(allocations)
        if left > 0:
            working.advance_payment = to_money(working.advance_payment + left)
            description += f"; {left} added to advance payment"
        return description

    return _mutate(ledger, "CUSTOM_PAYMENT", actor_id, apply)
