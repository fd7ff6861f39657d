"""Pagination classes for API v1."""

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardResultsSetPagination(PageNumberPagination):
    """Page number pagination; clients may ask for up to 200 rows."""

    page_size = 25
    page_size_query_param = "page_size"
    max_page_size = 200


class TransactionHistoryPagination(StandardResultsSetPagination):
    """Carnet history: bigger pages, with the page count for the client."""

    page_size = 50
    max_page_size = 500

    def get_paginated_response(self, data):
        return Response({
            "count": self.page.paginator.count,
            "total_pages": self.page.paginator.num_pages,
            "next": self.get_next_link(),
            "previous": self.get_previous_link(),
            "results": data,
        })
