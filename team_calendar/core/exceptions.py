"""
Scheduler Errors

Typed failures raised by the persistence layer and the scheduler.
The API layer maps each kind to an HTTP status.
"""


class SchedulerError(Exception):
    """Base class for booking errors"""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFound(SchedulerError):
    """No booking matches the requested id"""


class Forbidden(SchedulerError):
    """The actor may not perform this action on the booking"""


class StorageFailure(SchedulerError):
    """The database reported a failed statement execution"""


class BookingConflict(SchedulerError):
    """The requested range overlaps another booking of the same item"""

    def __init__(self, message: str = "", conflicting_ids: tuple = ()):
        super().__init__(message)
        self.conflicting_ids = conflicting_ids
