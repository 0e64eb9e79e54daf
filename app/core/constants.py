"""Application-wide constants.

This module centralizes magic numbers and configuration constants
that are used across multiple modules. For environment-specific
configuration, see config.py.
"""

# =============================================================================
# Pagination Defaults
# =============================================================================

# Default page size for ticket lists, filter and ticket search
DEFAULT_TICKET_PAGE_SIZE: int = 50

# Default page size for global search, per entity
GLOBAL_SEARCH_LIMIT: int = 20

# Default page size for user search
USER_SEARCH_LIMIT: int = 50

# Maximum page size to prevent abuse
MAX_PAGE_SIZE: int = 100

# =============================================================================
# Dashboard Windows
# =============================================================================

# Tickets created within this many days count as "recent"
RECENT_TICKETS_DAYS: int = 7

# Trend and resolution-time window
TREND_WINDOW_DAYS: int = 30

# Default limit for dashboard lists (recent, overdue, high priority)
DASHBOARD_LIST_LIMIT: int = 10

# Default limit for rankings/top lists
DEFAULT_RANKINGS_LIMIT: int = 5

# =============================================================================
# Tickets
# =============================================================================

TAG_SEPARATOR: str = ","

MAX_TITLE_LENGTH: int = 255
