"""
Volunteer Shift Service - shifts and the volunteers assigned to them.

A shift is FILLED while its active assignments reach the required number and
goes back to OPEN when an assignment is cancelled.
"""
import logging
from typing import Dict, Any
from django.db import transaction
from django.utils import timezone

from donations.services.base_service import (
    BaseService, success_response, ValidationError, NotFoundError, ConflictError,
    BusinessRuleError, to_int, to_datetime, choice_values
)
from donations.services.query_service import QuerySpec, run_query
from volunteers.models import VolunteerShift, VolunteerAssignment

logger = logging.getLogger(__name__)

ACTIVE_ASSIGNMENT = [
    VolunteerAssignment.Status.ASSIGNED,
    VolunteerAssignment.Status.CONFIRMED,
    VolunteerAssignment.Status.COMPLETED,
]


class VolunteerShiftService(BaseService):
    model = VolunteerShift

    query_spec = QuerySpec(
        search_fields=("title", "description", "location"),
        sort_fields={
            "start_time": "start_time",
            "end_time": "end_time",
            "title": "title",
            "location": "location",
            "status": "status",
            "required_volunteers": "required_volunteers",
        },
        default_sort="start_time",
    )

    # ==================== SERIALIZATION ====================

    @classmethod
    def serialize_assignment(cls, assignment: VolunteerAssignment) -> Dict[str, Any]:
        return {
            "id": assignment.id,
            "uuid": str(assignment.uuid),
            "shift_id": assignment.shift_id,
            "volunteer_id": assignment.volunteer_id,
            "status": assignment.status,
            "status_display": assignment.get_status_display(),
            "assigned_at": assignment.assigned_at.isoformat(),
            "check_in_time": assignment.check_in_time.isoformat() if assignment.check_in_time else None,
            "check_out_time": assignment.check_out_time.isoformat() if assignment.check_out_time else None,
            "notes": assignment.notes,
        }

    @classmethod
    def serialize(cls, shift: VolunteerShift, include_assignments: bool = False) -> Dict[str, Any]:
        data = {
            "id": shift.id,
            "uuid": str(shift.uuid),
            "title": shift.title,
            "description": shift.description,
            "start_time": shift.start_time.isoformat(),
            "end_time": shift.end_time.isoformat(),
            "location": shift.location,
            "required_volunteers": shift.required_volunteers,
            "assigned_volunteers": shift.assigned_volunteers,
            "open_slots": max(shift.required_volunteers - shift.assigned_volunteers, 0),
            "status": shift.status,
            "status_display": shift.get_status_display(),
            "created_by": shift.created_by,
            "created_at": shift.created_at.isoformat(),
            "updated_at": shift.updated_at.isoformat(),
        }
        if include_assignments:
            data["assignments"] = [
                cls.serialize_assignment(a) for a in shift.assignments.all()
            ]
        return data

    # ==================== LIST & GET ====================

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = None,
             search: str = None,
             sort_by: str = None,
             sort_descending: bool = None,
             status: str = None,
             start_date=None,
             end_date=None,
             location: str = None) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if status:
            queryset = queryset.filter(status=status)

        start_date = to_datetime(start_date, "start_date")
        end_date = to_datetime(end_date, "end_date")

        if start_date:
            queryset = queryset.filter(start_time__gte=start_date)

        if end_date:
            queryset = queryset.filter(end_time__lte=end_date)

        if location:
            queryset = queryset.filter(location=location)

        result = run_query(queryset, cls.query_spec, search, sort_by, sort_descending, page, per_page)

        return success_response({
            "shifts": [cls.serialize(s) for s in result.items],
            "pagination": result.pagination(),
        })

    @classmethod
    def get(cls, shift_id: int) -> Dict[str, Any]:
        shift = cls.get_or_404(shift_id)
        return success_response({"shift": cls.serialize(shift, include_assignments=True)})

    @classmethod
    def get_assignments(cls, shift_id: int) -> Dict[str, Any]:
        shift = cls.get_or_404(shift_id)
        assignments = shift.assignments.all()
        return success_response({
            "assignments": [cls.serialize_assignment(a) for a in assignments],
            "count": assignments.count(),
        })

    # ==================== CREATE / UPDATE / DELETE ====================

    @classmethod
    def _validate_window(cls, start_time, end_time) -> None:
        if start_time is None:
            raise ValidationError("Start time is required", "start_time")
        if end_time is None:
            raise ValidationError("End time is required", "end_time")
        if end_time <= start_time:
            raise ValidationError("End time must be after start time", "end_time")

    @classmethod
    def _validate_required(cls, value) -> int:
        value = to_int(value, "required_volunteers")
        if value < 1 or value > 100:
            raise ValidationError("Required volunteers must be between 1 and 100", "required_volunteers")
        return value

    @classmethod
    @transaction.atomic
    def create(cls,
               title: str,
               start_time,
               end_time,
               location: str,
               created_by: int,
               required_volunteers: int = 1,
               description: str = "") -> Dict[str, Any]:
        created_by = to_int(created_by, "created_by")
        if not title:
            raise ValidationError("Title is required", "title")
        if not location:
            raise ValidationError("Location is required", "location")

        start_time = to_datetime(start_time, "start_time")
        end_time = to_datetime(end_time, "end_time")
        cls._validate_window(start_time, end_time)

        shift = cls.model.objects.create(
            title=title,
            description=description or "",
            start_time=start_time,
            end_time=end_time,
            location=location,
            required_volunteers=cls._validate_required(required_volunteers),
            assigned_volunteers=0,
            status=VolunteerShift.Status.OPEN,
            created_by=created_by,
        )

        logger.info(f"Shift {shift.id} '{shift.title}' created by user {created_by}")

        return success_response({
            "id": shift.id,
            "shift": cls.serialize(shift),
        }, "Shift created")

    @classmethod
    @transaction.atomic
    def update(cls, shift_id: int, **kwargs) -> Dict[str, Any]:
        try:
            shift = cls.model.objects.select_for_update().get(id=shift_id)
        except cls.model.DoesNotExist:
            raise NotFoundError("Volunteer shift", shift_id)

        for field in ["title", "description", "location"]:
            if kwargs.get(field) is not None:
                setattr(shift, field, kwargs[field])

        if "start_time" in kwargs:
            shift.start_time = to_datetime(kwargs["start_time"], "start_time")
        if "end_time" in kwargs:
            shift.end_time = to_datetime(kwargs["end_time"], "end_time")
        cls._validate_window(shift.start_time, shift.end_time)

        if kwargs.get("required_volunteers") is not None:
            shift.required_volunteers = cls._validate_required(kwargs["required_volunteers"])

        if kwargs.get("status"):
            valid = choice_values(VolunteerShift.Status.choices)
            if kwargs["status"] not in valid:
                raise ValidationError(f"Invalid status. Valid: {valid}", "status")
            shift.status = kwargs["status"]
        elif shift.status in (VolunteerShift.Status.OPEN, VolunteerShift.Status.FILLED):
            shift.status = VolunteerShift.Status.FILLED if shift.is_full else VolunteerShift.Status.OPEN

        shift.save()

        return success_response({"shift": cls.serialize(shift)}, "Shift updated")

    @classmethod
    @transaction.atomic
    def delete(cls, shift_id: int) -> Dict[str, Any]:
        shift = cls.get_or_404(shift_id)

        if shift.assignments.filter(status__in=ACTIVE_ASSIGNMENT).exists():
            raise ConflictError("Cannot delete a shift with assigned volunteers", "shift")

        shift.delete()
        logger.info(f"Shift {shift_id} deleted")

        return success_response({"deleted": True, "id": shift_id}, "Shift deleted")

    # ==================== ASSIGNMENTS ====================

    @classmethod
    @transaction.atomic
    def assign(cls, shift_id: int, volunteer_id: int, notes: str = "") -> Dict[str, Any]:
        volunteer_id = to_int(volunteer_id, "volunteer_id")
        try:
            shift = cls.model.objects.select_for_update().get(id=shift_id)
        except cls.model.DoesNotExist:
            raise NotFoundError("Volunteer shift", shift_id)

        if shift.status not in (VolunteerShift.Status.OPEN, VolunteerShift.Status.FILLED):
            raise BusinessRuleError(f"Shift is {shift.get_status_display().lower()}", "shift_closed")

        if shift.is_full:
            raise BusinessRuleError("Shift is already full", "shift_full")

        if shift.assignments.filter(volunteer_id=volunteer_id, status__in=ACTIVE_ASSIGNMENT).exists():
            raise ConflictError("Volunteer is already assigned to this shift", "assignment")

        assignment = VolunteerAssignment.objects.create(
            shift=shift,
            volunteer_id=volunteer_id,
            status=VolunteerAssignment.Status.ASSIGNED,
            notes=notes or "",
        )

        shift.assigned_volunteers += 1
        if shift.is_full:
            shift.status = VolunteerShift.Status.FILLED
        shift.save(update_fields=["assigned_volunteers", "status", "updated_at"])

        logger.info(f"Volunteer {volunteer_id} assigned to shift {shift.id} ({shift.assigned_volunteers}/{shift.required_volunteers})")

        return success_response({
            "assignment": cls.serialize_assignment(assignment),
            "shift": cls.serialize(shift),
        }, "Volunteer assigned")

    @classmethod
    def _get_assignment(cls, assignment_id: int, lock: bool = False) -> VolunteerAssignment:
        queryset = VolunteerAssignment.objects.all()
        if lock:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(id=assignment_id)
        except VolunteerAssignment.DoesNotExist:
            raise NotFoundError("Volunteer assignment", assignment_id)

    @classmethod
    @transaction.atomic
    def unassign(cls, assignment_id: int) -> Dict[str, Any]:
        assignment = cls._get_assignment(assignment_id, lock=True)
        if assignment.status == VolunteerAssignment.Status.CANCELLED:
            raise BusinessRuleError("Assignment is already cancelled", "assignment_cancelled")

        shift = cls.model.objects.select_for_update().get(id=assignment.shift_id)

        assignment.status = VolunteerAssignment.Status.CANCELLED
        assignment.save(update_fields=["status"])

        shift.assigned_volunteers = max(shift.assigned_volunteers - 1, 0)
        if shift.status == VolunteerShift.Status.FILLED and not shift.is_full:
            shift.status = VolunteerShift.Status.OPEN
        shift.save(update_fields=["assigned_volunteers", "status", "updated_at"])

        logger.info(f"Assignment {assignment_id} cancelled, shift {shift.id} now {shift.status}")

        return success_response({
            "assignment": cls.serialize_assignment(assignment),
            "shift": cls.serialize(shift),
        }, "Volunteer unassigned")

    @classmethod
    @transaction.atomic
    def check_in(cls, assignment_id: int) -> Dict[str, Any]:
        assignment = cls._get_assignment(assignment_id, lock=True)
        if assignment.status != VolunteerAssignment.Status.ASSIGNED:
            raise BusinessRuleError(
                f"Cannot check in an assignment that is {assignment.get_status_display().lower()}",
                "check_in",
            )

        assignment.status = VolunteerAssignment.Status.CONFIRMED
        assignment.check_in_time = timezone.now()
        assignment.save(update_fields=["status", "check_in_time"])

        return success_response({"assignment": cls.serialize_assignment(assignment)}, "Checked in")

    @classmethod
    @transaction.atomic
    def check_out(cls, assignment_id: int) -> Dict[str, Any]:
        assignment = cls._get_assignment(assignment_id, lock=True)
        if assignment.status != VolunteerAssignment.Status.CONFIRMED:
            raise BusinessRuleError("Volunteer has not checked in", "check_out")

        assignment.status = VolunteerAssignment.Status.COMPLETED
        assignment.check_out_time = timezone.now()
        assignment.save(update_fields=["status", "check_out_time"])

        return success_response({"assignment": cls.serialize_assignment(assignment)}, "Checked out")
