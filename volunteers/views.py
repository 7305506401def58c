"""
Volunteer Shift API Views

Endpoints:
- /api/volunteers/shifts/ - list, create
- /api/volunteers/shifts/<id>/ - get, update, delete
- /api/volunteers/shifts/<id>/assignments/ - list, assign
- /api/volunteers/assignments/<id>/ - unassign
- /api/volunteers/assignments/<id>/check-in/ - check in
- /api/volunteers/assignments/<id>/check-out/ - check out
"""

import logging
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status

from donations.services import ServiceError, ValidationError
from donations.views import ERROR_STATUS, bool_param
from volunteers.services import VolunteerShiftService

logger = logging.getLogger(__name__)


def service_error(e: Exception) -> Response:
    if isinstance(e, ServiceError):
        details = dict(e.details)
        if isinstance(e, ValidationError) and e.field:
            details["field"] = e.field
        code = next((s for cls, s in ERROR_STATUS.items() if isinstance(e, cls)), status.HTTP_400_BAD_REQUEST)
        return Response(
            {"success": False, "error": {"code": e.code, "message": e.message, "details": details}},
            status=code,
        )

    logger.exception(f"Unhandled error in volunteer API: {e}")
    return Response(
        {"success": False, "error": {"code": "server_error", "message": "Internal server error", "details": {}}},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class BaseShiftView(APIView):
    authentication_classes = []
    permission_classes = []

    def get_actor(self, request, field: str):
        if request.user and request.user.is_authenticated:
            return request.user.id
        return request.data.get(field)


class ShiftListView(BaseShiftView):

    def get(self, request):
        try:
            params = request.query_params
            result = VolunteerShiftService.list(
                page=params.get("page", 1),
                per_page=params.get("page_size") or params.get("per_page"),
                search=params.get("search"),
                sort_by=params.get("sort_by"),
                sort_descending=bool_param(params.get("sort_descending")),
                status=params.get("status"),
                start_date=params.get("start_date"),
                end_date=params.get("end_date"),
                location=params.get("location"),
            )
            return Response(result)
        except Exception as e:
            return service_error(e)

    def post(self, request):
        try:
            data = request.data
            result = VolunteerShiftService.create(
                title=data.get("title"),
                start_time=data.get("start_time"),
                end_time=data.get("end_time"),
                location=data.get("location"),
                created_by=self.get_actor(request, "created_by"),
                required_volunteers=data.get("required_volunteers", 1),
                description=data.get("description", ""),
            )
            return Response(result, status=status.HTTP_201_CREATED)
        except Exception as e:
            return service_error(e)


class ShiftDetailView(BaseShiftView):

    def get(self, request, shift_id):
        try:
            return Response(VolunteerShiftService.get(shift_id))
        except Exception as e:
            return service_error(e)

    def put(self, request, shift_id):
        try:
            fields = ("title", "description", "location", "start_time", "end_time",
                      "required_volunteers", "status")
            data = {k: request.data[k] for k in fields if k in request.data}
            return Response(VolunteerShiftService.update(shift_id, **data))
        except Exception as e:
            return service_error(e)

    def delete(self, request, shift_id):
        try:
            return Response(VolunteerShiftService.delete(shift_id))
        except Exception as e:
            return service_error(e)


class ShiftAssignmentsView(BaseShiftView):

    def get(self, request, shift_id):
        try:
            return Response(VolunteerShiftService.get_assignments(shift_id))
        except Exception as e:
            return service_error(e)

    def post(self, request, shift_id):
        try:
            result = VolunteerShiftService.assign(
                shift_id,
                volunteer_id=request.data.get("volunteer_id"),
                notes=request.data.get("notes", ""),
            )
            return Response(result, status=status.HTTP_201_CREATED)
        except Exception as e:
            return service_error(e)


class AssignmentDetailView(BaseShiftView):

    def delete(self, request, assignment_id):
        try:
            return Response(VolunteerShiftService.unassign(assignment_id))
        except Exception as e:
            return service_error(e)


class AssignmentCheckInView(BaseShiftView):

    def post(self, request, assignment_id):
        try:
            return Response(VolunteerShiftService.check_in(assignment_id))
        except Exception as e:
            return service_error(e)


class AssignmentCheckOutView(BaseShiftView):

    def post(self, request, assignment_id):
        try:
            return Response(VolunteerShiftService.check_out(assignment_id))
        except Exception as e:
            return service_error(e)
