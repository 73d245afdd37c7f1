import math

from django.conf import settings
from rest_framework.pagination import BasePagination
from rest_framework.response import Response


def _entier(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class QhsePagination(BasePagination):
    """
    Pagination page/limit avec l'enveloppe de liste commune:
    {success, <collection>, total, total_pages, current_page, has_next_page, has_prev_page}
    """

    page_query_param = "page"
    limit_query_param = "limit"

    def paginate_queryset(self, queryset, request, view=None):
        conf = settings.QHSE_PAGINATION
        self.page = max(1, _entier(request.query_params.get(self.page_query_param), 1))
        limit = _entier(request.query_params.get(self.limit_query_param), conf["default_limit"])
        self.limit = min(max(1, limit), conf["max_limit"])
        self.total = queryset.count()
        debut = (self.page - 1) * self.limit
        return list(queryset[debut:debut + self.limit])

    def get_paginated_response(self, data, collection: str = "items"):
        total_pages = math.ceil(self.total / self.limit) if self.total else 0
        return Response({
            "success": True,
            collection: data,
            "total": self.total,
            "total_pages": total_pages,
            "current_page": self.page,
            "has_next_page": self.page < total_pages,
            "has_prev_page": self.page > 1,
        })
