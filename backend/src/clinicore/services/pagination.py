"""Pagination parameter checks shared by the router and the service."""

PAGE_SIZE_INVALID = "Page size invalid."
PAGE_NUMBER_INVALID = "Page number invalid."


def validate_pagination(page_number: int, page_size: int) -> str | None:
    """Return an error message for invalid paging, or None when valid."""
    if page_size < 1:
        return PAGE_SIZE_INVALID
    if page_number < 1:
        return PAGE_NUMBER_INVALID
    return None


def page_offset(page_number: int, page_size: int) -> int:
    return (page_number - 1) * page_size
