"""
Exception types shared by the data access layer and the HTTP handlers.
"""


class SchedulerError(Exception):
    """Base exception for scheduler backend errors."""
    pass


class WarehouseError(SchedulerError):
    """Raised when a BigQuery job fails."""
    pass


class SheetsError(SchedulerError):
    """Raised when a Google Sheets call fails."""
    pass


class AccessListError(SchedulerError):
    """Raised when the admin allow-list cannot be loaded."""
    pass


class NotFoundError(SchedulerError):
    """Raised when an update or lookup matched no row."""
    pass
