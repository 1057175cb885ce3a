"""
Pagination helper utilities.
"""
import math


def calculate_total_pages(total: int, per_page: int) -> int:
    """
    Number of pages for a result set.

    A page size of 0 means "all records" and always yields a single page.

    Examples:
        >>> calculate_total_pages(0, 25)
        0
        >>> calculate_total_pages(51, 25)
        3
        >>> calculate_total_pages(51, 0)
        1
    """
    if per_page == 0:
        return 1
    return int(math.ceil(total / per_page))


def calculate_offset(page: int, per_page: int) -> int:
    """
    Row offset of a 1-indexed page.

    Examples:
        >>> calculate_offset(3, 25)
        50
    """
    return (max(1, page) - 1) * per_page
