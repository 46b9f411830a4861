"""
Page/limit pagination shared by every list endpoint.

Query parameters:
    - page: 1-based page number
    - limit: page size (max 100)
"""
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class PageLimitPagination(PageNumberPagination):
    page_size = 10
    page_query_param = 'page'
    page_size_query_param = 'limit'
    max_page_size = 100

    def get_paginated_response(self, data):
        page = self.page
        return Response({
            'results': data,
            'pagination': {
                'current_page': page.number,
                'total_pages': page.paginator.num_pages,
                'total_items': page.paginator.count,
                'has_next': page.has_next(),
                'has_prev': page.has_previous(),
            }
        })
