"""List helpers shared by the module, user and submission viewsets."""

from rest_framework.response import Response

NEWEST_FIRST = ("-created_at", "-id")


class PaginationMixin:
    """Paginate a queryset and render the page with ``serializer_cls``.

    Querysets without an explicit ordering are listed newest first so page
    boundaries stay stable between requests.
    """

    def paginate_and_respond(self, queryset, serializer_cls, ordering=NEWEST_FIRST):
        if not queryset.ordered:
            queryset = queryset.order_by(*ordering)
        page = self.paginate_queryset(queryset)
        if page is None:
            return Response(serializer_cls(queryset, many=True).data)
        return self.get_paginated_response(serializer_cls(page, many=True).data)
