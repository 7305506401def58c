from typing import Dict, Any, Optional, List, Tuple
from datetime import datetime, date, timedelta, timezone as dt_timezone
from django.conf import settings
from django.db.models import Model
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime


class ServiceError(Exception):
    def __init__(self, message: str, code: str = "ERROR", details: Dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    def __init__(self, message: str, field: str = None, details: Dict = None):
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class NotFoundError(ServiceError):
    def __init__(self, resource: str, identifier: Any, message: str = None):
        super().__init__(
            message or f"{resource} not found: {identifier}",
            "NOT_FOUND",
            {"resource": resource, "identifier": str(identifier)}
        )


class ConflictError(ServiceError):
    def __init__(self, message: str, resource: str = None):
        super().__init__(message, "CONFLICT", {"resource": resource})
        self.resource = resource


class InvalidTransitionError(ServiceError):
    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot move from {current} to {requested}",
            "INVALID_TRANSITION",
            {"current": current, "requested": requested}
        )
        self.current = current
        self.requested = requested


class BusinessRuleError(ServiceError):
    def __init__(self, message: str, rule: str = None):
        super().__init__(message, "BUSINESS_RULE_VIOLATION", {"rule": rule})


def success_response(data: Any = None, message: str = "Success") -> Dict:
    response = {"success": True, "message": message}
    if data is not None:
        if isinstance(data, dict):
            response.update(data)
        else:
            response["data"] = data
    return response


def get_config(key: str, default: Any = None) -> Any:
    return getattr(settings, "FOODBRIDGE", {}).get(key, default)


def to_int(value: Any, field: str, required: bool = True) -> Optional[int]:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required", field)
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", field)


def to_date(value: Any, field: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_date(str(value))
    if parsed is None:
        raise ValidationError(f"{field} must be an ISO date", field)
    return parsed


def to_datetime(value: Any, field: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = parse_datetime(str(value))
        if parsed is None:
            day = parse_date(str(value))
            if day is None:
                raise ValidationError(f"{field} must be an ISO datetime", field)
            parsed = datetime(day.year, day.month, day.day)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def days_until(value: Optional[date]) -> Optional[int]:
    if not value:
        return None
    return (value - timezone.now().date()).days


def expiry_window(days: int = None) -> Tuple[date, date]:
    days = days if days is not None else get_config("EXPIRING_SOON_DAYS", 7)
    today = timezone.now().date()
    return today, today + timedelta(days=days)


def generate_number(prefix: str, model_class: Model, field: str = "receipt_number") -> str:
    today = timezone.now()
    date_part = today.strftime("%Y%m%d")
    filter_kwargs = {f"{field}__startswith": f"{prefix}-{date_part}"}
    last = model_class.objects.filter(**filter_kwargs).order_by(f"-{field}").first()

    if last:
        last_num = getattr(last, field)
        try:
            seq = int(last_num.split("-")[-1]) + 1
        except ValueError:
            seq = 1
    else:
        seq = 1

    return f"{prefix}-{date_part}-{seq:04d}"


def choice_values(choices) -> List[str]:
    return [c[0] for c in choices]


class BaseService:
    model = None

    @classmethod
    def get_by_id(cls, id: int) -> Optional[Model]:
        try:
            return cls.model.objects.get(id=id)
        except cls.model.DoesNotExist:
            return None

    @classmethod
    def get_by_uuid(cls, uuid_str: str) -> Optional[Model]:
        try:
            return cls.model.objects.get(uuid=uuid_str)
        except (cls.model.DoesNotExist, ValueError):
            return None

    @classmethod
    def get_or_404(cls, id: int) -> Model:
        obj = cls.get_by_id(id)
        if not obj:
            raise NotFoundError(cls.model._meta.verbose_name.capitalize(), id)
        return obj

    @classmethod
    def exists(cls, id: int) -> bool:
        return cls.model.objects.filter(id=id).exists()

    @classmethod
    def get_active(cls):
        if hasattr(cls.model, 'is_active'):
            return cls.model.objects.filter(is_active=True)
        return cls.model.objects.all()
