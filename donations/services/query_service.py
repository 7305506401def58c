"""
Search / sort / paginate for list endpoints.

Each service declares a QuerySpec: which ORM paths are searched and which
public sort names map to which ORM paths. Filtering is done by the service
before calling run_query; search, sort and pagination always run in that
order.

    spec = QuerySpec(
        search_fields=("donor__name", "status", "notes"),
        sort_fields={"donation_date": "donation_date", "donor_name": "donor__name"},
        default_sort="donation_date",
        default_descending=True,
    )
    page = run_query(queryset, spec, search="bakery", sort_by="DonorName", page_number=2)
"""
from dataclasses import dataclass, field
from math import ceil
from typing import Any, Dict, List, Optional, Tuple

from django.db import transaction
from django.db.models import Q, QuerySet

from donations.services.base_service import get_config

MAX_PAGE_SIZE = 100


def _normalize(name: str) -> str:
    return name.replace("_", "").replace("-", "").lower()


@dataclass(frozen=True)
class QuerySpec:
    search_fields: Tuple[str, ...] = ()
    sort_fields: Dict[str, str] = field(default_factory=dict)
    default_sort: Optional[str] = None
    default_descending: bool = False

    def resolve_sort(self, name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        wanted = _normalize(name)
        for public, path in self.sort_fields.items():
            if _normalize(public) == wanted:
                return path
        return None


@dataclass
class Page:
    items: List[Any]
    total_count: int
    page_number: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return ceil(self.total_count / self.page_size) if self.page_size else 0

    @property
    def has_next(self) -> bool:
        return self.page_number < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page_number > 1

    def pagination(self) -> Dict[str, Any]:
        return {
            "page_number": self.page_number,
            "page_size": self.page_size,
            "total_count": self.total_count,
            "total_pages": self.total_pages,
            "has_next": self.has_next,
            "has_previous": self.has_previous,
        }


def clamp_page(page_number: Any = 1, page_size: Any = None) -> Tuple[int, int]:
    if page_size in (None, ""):
        page_size = get_config("DEFAULT_PAGE_SIZE", 10)
    try:
        page_number = int(page_number)
    except (TypeError, ValueError):
        page_number = 1
    try:
        page_size = int(page_size)
    except (TypeError, ValueError):
        page_size = get_config("DEFAULT_PAGE_SIZE", 10)
    return max(1, page_number), min(max(1, page_size), MAX_PAGE_SIZE)


def apply_search(queryset: QuerySet, search: Optional[str], fields: Tuple[str, ...]) -> QuerySet:
    if not search or not search.strip() or not fields:
        return queryset
    term = search.strip()
    condition = Q()
    for path in fields:
        condition |= Q(**{f"{path}__icontains": term})
    return queryset.filter(condition)


def apply_sort(queryset: QuerySet, spec: QuerySpec,
               sort_by: Optional[str] = None,
               sort_descending: Optional[bool] = None) -> QuerySet:
    if sort_by:
        path = spec.resolve_sort(sort_by)
        descending = bool(sort_descending)
    else:
        path = spec.resolve_sort(spec.default_sort)
        descending = spec.default_descending if sort_descending is None else bool(sort_descending)

    # pk keeps ordering total so consecutive pages never overlap
    if path is None:
        return queryset.order_by("pk")
    prefix = "-" if descending else ""
    return queryset.order_by(f"{prefix}{path}", f"{prefix}pk")


def paginate(queryset: QuerySet, page_number: Any = 1, page_size: Any = None) -> Page:
    page_number, page_size = clamp_page(page_number, page_size)
    with transaction.atomic():
        total = queryset.count()
        offset = (page_number - 1) * page_size
        items = list(queryset[offset:offset + page_size])
    return Page(items=items, total_count=total, page_number=page_number, page_size=page_size)


def run_query(queryset: QuerySet, spec: QuerySpec,
              search: Optional[str] = None,
              sort_by: Optional[str] = None,
              sort_descending: Optional[bool] = None,
              page_number: Any = 1,
              page_size: Any = None) -> Page:
    queryset = apply_search(queryset, search, spec.search_fields)
    queryset = apply_sort(queryset, spec, sort_by, sort_descending)
    return paginate(queryset, page_number, page_size)
