from __future__ import annotations


class BookingError(Exception):
	"""Base class for every failure raised by the booking core."""

	default_message = "Booking error"

	def __init__(self, message: str | None = None) -> None:
		self.message = message or self.default_message
		super().__init__(self.message)


# Raised by the entity store when the database rejects a write.

class StoreError(BookingError):
	pass


class DuplicateKey(StoreError):
	default_message = "Duplicate key"


class ForeignKeyViolation(StoreError):
	default_message = "Referenced entity does not exist"


class UniqueConstraintViolation(StoreError):
	default_message = "Unique constraint violated"


# Domain-level kinds surfaced to callers of the booking engine and lifecycle manager.

class NotFound(BookingError):
	default_message = "Not found"


class Conflict(BookingError):
	default_message = "Conflict"


class InvalidInput(BookingError):
	default_message = "Invalid input"
