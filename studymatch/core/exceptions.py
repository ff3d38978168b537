"""Errors raised by the matchmaking and room services."""

from typing import Iterable


class JoinValidationError(ValueError):
    """A request is missing required fields or carries invalid values.

    Raised before any store access so nothing is written.
    """

    def __init__(self, fields: Iterable[str], message: str = None):
        self.fields = list(fields)
        super().__init__(message or f"Missing or invalid fields: {', '.join(self.fields)}")


class StoreUnavailable(Exception):
    """The durable store could not complete an operation."""


class RoomNotFound(LookupError):
    """No room exists with the requested id."""

    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")
