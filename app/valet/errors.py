"""Error taxonomy surfaced by the valet services."""

from __future__ import annotations


class ValetError(RuntimeError):
    """Base error for valet service issues."""


class ValidationError(ValetError):
    """Raised when required input is missing or malformed."""


class NotFoundError(ValetError):
    """Raised when a referenced record could not be located."""


class TicketNotFoundError(NotFoundError):
    """Raised when a ticket could not be located."""

    def __init__(self, ticket_id: int) -> None:
        super().__init__(f"Ticket {ticket_id} not found")
        self.ticket_id = ticket_id


class DispatchNotFoundError(NotFoundError):
    """Raised when a dispatch could not be located."""

    def __init__(self, dispatch_id: int) -> None:
        super().__init__(f"Dispatch {dispatch_id} not found")
        self.dispatch_id = dispatch_id


class InvalidTicketTransitionError(ValetError):
    """Raised when attempting to move a ticket to a state it cannot reach."""


class ConfigurationError(ValetError):
    """Raised when the deployment is missing data the engine needs, such as gates."""
