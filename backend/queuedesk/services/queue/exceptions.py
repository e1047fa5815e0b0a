"""Queue domain exceptions."""

from queuedesk.models.status import TicketStatus
from queuedesk.services.exceptions import CapacityError, ConflictError, NotFoundError, ValidationError


class InvalidBranch(ValidationError):
    """Branch code is unknown or the branch is inactive."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(f"Branch '{branch}' does not exist or is not active")


class InvalidQueueNumber(ValidationError):
    """Queue number does not match PREFIX-NNN."""

    def __init__(self, queue_no: str):
        self.queue_no = queue_no
        super().__init__(f"Invalid queue number format: {queue_no!r}")


class QueueFull(CapacityError):
    """Daily queue cap reached for the branch."""

    def __init__(self, branch: str, cap: int):
        self.branch = branch
        self.cap = cap
        super().__init__(f"Maximum queue limit ({cap}) reached for today")


class TicketNotFound(NotFoundError):
    """Ticket not found (or it belongs to another branch)."""

    pass


class NoTicketsInQueue(NotFoundError):
    """No WAITING ticket in the requested scope."""

    pass


class AlreadyServing(ConflictError):
    """Another ticket already holds the serving slot of the scope."""

    def __init__(self, queue_no: str):
        self.queue_no = queue_no
        super().__init__(f"Ticket {queue_no} is already being served")


class InvalidTransition(ConflictError):
    """Ticket status does not allow the requested transition."""

    def __init__(self, current: TicketStatus, target: TicketStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {current.value} to {target.value}")
