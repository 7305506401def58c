"""
Donation lifecycle rules.

Status flow:

    PENDING -> INSPECTION -> APPROVED | REJECTED -> ARCHIVED

PENDING -> INSPECTION happens on the first inspection or disposition of an
item. APPROVED / REJECTED follow from the disposition state of every item and
are recomputed with `derive_donation_status` after each disposition. The
administrative override (`DonationService.update_status`) may only take one
step along the flow at a time, and may only enter APPROVED / REJECTED when
that is what the item dispositions already derive.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, FrozenSet

from donations.models import Donation
from donations.services.base_service import BusinessRuleError, InvalidTransitionError, ValidationError


Status = Donation.Status

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    Status.PENDING: frozenset({Status.INSPECTION}),
    Status.INSPECTION: frozenset({Status.APPROVED, Status.REJECTED}),
    Status.APPROVED: frozenset({Status.ARCHIVED}),
    Status.REJECTED: frozenset({Status.ARCHIVED}),
    Status.ARCHIVED: frozenset(),
}

OPEN_STATUSES = frozenset({Status.PENDING, Status.INSPECTION})

DERIVED_STATUSES = frozenset({Status.APPROVED, Status.REJECTED})


@dataclass(frozen=True)
class ItemState:
    """What the lifecycle needs to know about one donation item."""
    inspected: bool
    dispositioned: bool
    quantity_approved: int = 0


def validate_status(status: str) -> str:
    valid = [c[0] for c in Status.choices]
    if status not in valid:
        raise ValidationError(f"Invalid status. Valid: {valid}", "status")
    return status


def check_transition(current: str, requested: str) -> None:
    validate_status(requested)
    if requested not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current, requested)


def derive_donation_status(current: str, items: Iterable[ItemState]) -> str:
    """
    Status a donation should hold given its items.

    Only open donations (PENDING / INSPECTION) move. Any inspected or
    dispositioned item puts the donation into INSPECTION; once every item
    has a disposition it becomes APPROVED if anything was approved and
    REJECTED otherwise.
    """
    if current not in OPEN_STATUSES:
        return current

    items = list(items)
    if not items:
        return current

    if all(item.dispositioned for item in items):
        if any(item.quantity_approved > 0 for item in items):
            return Status.APPROVED
        return Status.REJECTED

    if any(item.inspected or item.dispositioned for item in items):
        return Status.INSPECTION

    return current


def item_states(donation: Donation):
    states = []
    for item in donation.items.select_related("inspection", "disposition"):
        disposition = getattr(item, "disposition", None)
        states.append(ItemState(
            inspected=hasattr(item, "inspection"),
            dispositioned=disposition is not None,
            quantity_approved=disposition.quantity_approved if disposition else 0,
        ))
    return states


def check_manual_transition(current: str, requested: str, items: Iterable[ItemState]) -> None:
    """An administrative move; APPROVED / REJECTED must agree with the items."""
    check_transition(current, requested)
    if requested in DERIVED_STATUSES:
        derived = derive_donation_status(current, items)
        if derived != requested:
            raise BusinessRuleError(
                f"{requested} follows from item dispositions; the items derive {derived}",
                "derived_status",
            )
