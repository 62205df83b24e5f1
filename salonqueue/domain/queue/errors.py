"""Queue domain errors"""


class QueueError(Exception):
    """A queue operation was rejected by a business rule"""


class NotFoundError(QueueError):
    pass


class AlreadyCheckedIn(QueueError):
    pass


class AlreadyCheckedOut(QueueError):
    pass


class EmployeeUnavailable(QueueError):
    pass


class InvalidTransition(QueueError):
    pass
