# errors.py: failures surfaced by the inventory


class InventoryError(Exception):
    """Base class for every failure the collection reports to the user."""


class Unauthenticated(InventoryError):
    """No active session when one is required."""


class InvalidInput(InventoryError):
    """An action was asked for with unusable input (e.g. an empty ISBN)."""


class BackendError(InventoryError):
    """A persistence operation failed; the message is the backend's own."""


class NotFound(BackendError):
    """The target row does not exist or is not owned by the actor."""


class LookupFailed(InventoryError):
    """The metadata or pricing service is unreachable, misconfigured or found nothing."""
