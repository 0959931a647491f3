"""Asset lifecycle state machine.

Pure functions: each ``plan_*`` takes the current ``AssetState`` plus the
action's inputs and returns a ``TransitionPlan`` describing the single
row update, the history entry and any side records to write. Nothing here
touches the database or reads the clock; ``services.transitions`` applies
plans.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from django.core.exceptions import ValidationError

STATUS_CHOICES = [
    ("available", "Available"),
    ("in_use", "In Use"),
    ("maintenance", "Maintenance"),
    ("disposed", "Disposed"),
    ("lost", "Lost"),
    ("retired", "Retired"),
]

STATUSES = frozenset(value for value, _ in STATUS_CHOICES)

# Statuses with no further meaningful transition in normal operation.
# They can still be re-activated through a direct status change.
TERMINAL_STATUSES = frozenset({"disposed", "lost"})

ASSIGNMENT_FIELDS = (
    "assigned_to",
    "checked_out_to",
    "checked_out_at",
    "expected_return_date",
    "check_out_notes",
)

CLEARED_ASSIGNMENT = {name: None for name in ASSIGNMENT_FIELDS}

RELEASES_LICENSES = frozenset({"disposed", "lost"})


class InvalidTransition(ValidationError):
    """The requested action is not allowed from the asset's status."""


@dataclass(frozen=True)
class AssetState:
    """Lifecycle-relevant snapshot of one asset row."""

    asset_id: int | None
    status: str
    assigned_to: int | None = None
    checked_out_to: int | None = None
    checked_out_at: datetime | None = None
    expected_return_date: date | None = None
    check_out_notes: str | None = None

    @classmethod
    def from_asset(cls, asset) -> "AssetState":
        return cls(
            asset_id=asset.pk,
            status=asset.status,
            assigned_to=asset.assigned_to_id,
            checked_out_to=asset.checked_out_to_id,
            checked_out_at=asset.checked_out_at,
            expected_return_date=asset.expected_return_date,
            check_out_notes=asset.check_out_notes,
        )

    @property
    def has_assignment(self) -> bool:
        return any(
            getattr(self, name) is not None for name in ASSIGNMENT_FIELDS
        )


@dataclass(frozen=True)
class RepairDraft:
    status: str
    issue_description: str
    started_at: datetime
    completed_at: datetime | None = None
    cost: Decimal | None = None
    technician: str = ""
    notes: str | None = None


@dataclass(frozen=True)
class TransitionPlan:
    """Everything one lifecycle action writes.

    ``fields`` is the complete column set for a single UPDATE of the
    asset row, so the status and the assignment clearing are never
    written separately.
    """

    action: str
    old_status: str
    new_status: str
    fields: dict = field(default_factory=dict)
    details: dict = field(default_factory=dict)
    repair: RepairDraft | None = None
    release_licenses: bool = False

    @property
    def clears_assignment(self) -> bool:
        return all(
            name in self.fields and self.fields[name] is None
            for name in ASSIGNMENT_FIELDS
        )


def _iso(value):
    return value.isoformat() if value is not None else None


def _require_status(state: AssetState, allowed: set[str], action: str):
    if state.status not in allowed:
        raise InvalidTransition(
            f"Cannot {action} an asset that is "
            f"'{state.status}'. Allowed from: "
            f"{', '.join(sorted(allowed))}."
        )


def _reject_same_status(state: AssetState, target: str):
    if state.status == target:
        raise InvalidTransition(f"Asset is already '{target}'.")


def _leave_status(state: AssetState, target: str) -> dict:
    """Column values for moving to ``target`` without an assignment."""
    return {"status": target, **CLEARED_ASSIGNMENT}


def plan_checkout(
    state: AssetState,
    assignee_id: int,
    checked_out_at: datetime,
    expected_return_date: date | None = None,
    notes: str = "",
) -> TransitionPlan:
    """Assign an available asset to a user."""
    _require_status(state, {"available"}, "check out")
    if assignee_id is None:
        raise ValidationError("An assignee is required to check out.")
    if expected_return_date and expected_return_date < checked_out_at.date():
        raise ValidationError(
            "Expected return date cannot be before the checkout date."
        )
    return TransitionPlan(
        action="checked_out",
        old_status=state.status,
        new_status="in_use",
        fields={
            "status": "in_use",
            "assigned_to": assignee_id,
            "checked_out_to": assignee_id,
            "checked_out_at": checked_out_at,
            "expected_return_date": expected_return_date,
            "check_out_notes": notes or None,
        },
        details={
            "user_id": assignee_id,
            "checkout_date": _iso(checked_out_at),
            "expected_return": _iso(expected_return_date),
            "notes": notes,
        },
    )


def plan_checkin(
    state: AssetState, returned_at: datetime, notes: str = ""
) -> TransitionPlan:
    """Return an in-use asset to stock."""
    _require_status(state, {"in_use"}, "check in")
    return TransitionPlan(
        action="checked_in",
        old_status=state.status,
        new_status="available",
        fields=_leave_status(state, "available"),
        details={
            "user_id": state.checked_out_to or state.assigned_to,
            "returned_at": _iso(returned_at),
            "notes": notes,
        },
    )


def plan_repair(
    state: AssetState,
    started_at: datetime,
    completed_at: datetime | None = None,
    cost: Decimal | None = None,
    technician: str = "",
    notes: str = "",
) -> TransitionPlan:
    """Send an asset for repair and open a repair record.

    The repair is created ``completed`` when a completion date is
    supplied up front, ``in_progress`` otherwise.
    """
    _reject_same_status(state, "maintenance")
    if completed_at and completed_at < started_at:
        raise ValidationError(
            "Repair completion cannot be before it started."
        )
    repair = RepairDraft(
        status="completed" if completed_at else "in_progress",
        issue_description=notes or "Repair/Maintenance scheduled",
        started_at=started_at,
        completed_at=completed_at,
        cost=cost,
        technician=technician,
        notes=notes or None,
    )
    return TransitionPlan(
        action="sent_for_repair",
        old_status=state.status,
        new_status="maintenance",
        fields=_leave_status(state, "maintenance"),
        details={
            "schedule_date": _iso(started_at),
            "completed_date": _iso(completed_at),
            "assigned_to": technician or None,
            "estimated_cost": str(cost) if cost is not None else None,
            "notes": notes,
        },
        repair=repair,
    )


def plan_mark_lost(
    state: AssetState, broken_date: datetime, notes: str = ""
) -> TransitionPlan:
    """Mark an asset broken or lost, dropping any assignment."""
    _reject_same_status(state, "lost")
    return TransitionPlan(
        action="marked_as_broken",
        old_status=state.status,
        new_status="lost",
        fields=_leave_status(state, "lost"),
        details={"broken_date": _iso(broken_date), "notes": notes},
        release_licenses=True,
    )


def plan_dispose(state: AssetState, notes: str = "") -> TransitionPlan:
    """Dispose of an asset, dropping any assignment."""
    _reject_same_status(state, "disposed")
    return TransitionPlan(
        action="status_changed",
        old_status=state.status,
        new_status="disposed",
        fields=_leave_status(state, "disposed"),
        details={"reason": "disposed", "notes": notes},
        release_licenses=True,
    )


def plan_status_change(
    state: AssetState, target: str, notes: str = ""
) -> TransitionPlan:
    """Direct status change, used by bulk updates and the status menu.

    Moving to ``in_use`` needs an assignee, so it must go through
    ``plan_checkout``. Every other target drops the assignment.
    """
    if target not in STATUSES:
        raise InvalidTransition(f"'{target}' is not a valid status.")
    if target == "in_use":
        raise InvalidTransition(
            "Use check out to put an asset in use; it needs an assignee."
        )
    _reject_same_status(state, target)
    details = {"notes": notes} if notes else {}
    if state.status in TERMINAL_STATUSES:
        details["reactivated"] = True
    return TransitionPlan(
        action="status_changed",
        old_status=state.status,
        new_status=target,
        fields=_leave_status(state, target),
        details=details,
        release_licenses=target in RELEASES_LICENSES,
    )


def apply_to_state(state: AssetState, plan: TransitionPlan) -> AssetState:
    """Return the state the asset row holds once ``plan`` is written."""
    values = {
        name: plan.fields.get(name, getattr(state, name))
        for name in ASSIGNMENT_FIELDS
    }
    return AssetState(
        asset_id=state.asset_id,
        status=plan.fields.get("status", state.status),
        **values,
    )
