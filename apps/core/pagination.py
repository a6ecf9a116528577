# apps/core/pagination.py

"""
Pagination for list endpoints.
"""

from collections import OrderedDict

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardResultsSetPagination(PageNumberPagination):
    """
    Standard pagination for all list endpoints.
    Returns 20 items per page by default, with customizable page size.
    """

    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100
    page_query_param = "page"

    def get_paginated_response(self, data):
        """
        Page envelope with totals and navigation metadata.
        """
        return Response(
            OrderedDict(
                [
                    ("count", self.page.paginator.count),
                    ("total_pages", self.page.paginator.num_pages),
                    ("current_page", self.page.number),
                    ("page_size", self.get_page_size(self.request)),
                    ("next", self.get_next_link()),
                    ("previous", self.get_previous_link()),
                    ("results", data),
                    (
                        "_meta",
                        {
                            "has_next": self.page.has_next(),
                            "has_previous": self.page.has_previous(),
                            "start_index": self.page.start_index(),
                            "end_index": self.page.end_index(),
                        },
                    ),
                ]
            )
        )
