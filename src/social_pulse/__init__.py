"""social-pulse — Normalize monthly social-media spreadsheet exports into report-ready stats."""

__version__ = "0.2.0"

HEADER_ROLES: list[str] = ["platform", "page_name", "followers", "owner"]

ALL = "All"
