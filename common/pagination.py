from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Page-number pagination shared by every owner-scoped list endpoint.

    `?page_size=` overrides the default page size up to `max_page_size`.
    """

    page_size = 50
    page_size_query_param = "page_size"
    max_page_size = 200
