"""Pagination for the payment order history."""
from __future__ import annotations

from rest_framework.pagination import PageNumberPagination


class BoundedPageNumberPagination(PageNumberPagination):
    """Page through an author's orders; clients may shrink pages but never exceed ``max_page_size``."""

    page_size = 25
    page_size_query_param = "page_size"
    max_page_size = 100

    def get_page_size(self, request):
        size = super().get_page_size(request)
        return max(1, min(size or self.page_size, self.max_page_size))
