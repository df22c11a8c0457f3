"""Inventory errors.

Every rejection is raised before the record is touched, so a failed
operation leaves counters, reservations and the movement log unchanged.
The classes build on Protean's exceptions, which the FastAPI integration
already maps to HTTP status codes: validation failures become 400,
missing objects 404 and contention 422.
"""

from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError


class InvalidQuantity(ValidationError):
    """A quantity was zero or negative where a positive one is required,
    or a counted quantity would undercut the reserved amount."""


class InsufficientStock(ValidationError):
    """The request needs more units than are available."""


class InvalidThresholds(ValidationError):
    """Thresholds violate 0 <= reorder_point <= low_stock_threshold <= max_stock_level."""


class InvalidState(ValidationError):
    """The record or reservation is not in a state that permits the operation."""


class NotFound(ObjectNotFoundError):
    """The referenced inventory record or reservation does not exist."""


class Contended(InvalidOperationError):
    """The per-record lock could not be acquired in time."""
