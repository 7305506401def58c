from .shift_service import VolunteerShiftService

__all__ = ["VolunteerShiftService"]
