"""Error taxonomy for aumos-change-tracker.

Audit failures never abort the lifecycle event that triggered them. Hooks
collect these errors on their TrackingResult instead of raising; callers
decide whether to re-raise via TrackingResult.raise_for_errors().
"""


class ChangeTrackerError(Exception):
    """Base class for all change tracking errors."""


class CopyError(ChangeTrackerError):
    """An entity's field values could not be deep-copied into a snapshot."""


class SerializationError(ChangeTrackerError):
    """Entity state or metadata could not be serialized into a change log."""


class DeserializationError(ChangeTrackerError):
    """A stored raw object, meta or diff could not be decoded."""


class StoreError(ChangeTrackerError):
    """The change log store rejected an append or a query."""


class NotFoundError(StoreError):
    """No change log matched the lookup.

    Args:
        resource: The kind of resource looked up.
        resource_id: The identifier that produced no match.
    """

    def __init__(self, resource: str, resource_id: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found")


class MissingActorError(ChangeTrackerError):
    """A registered actor context cannot resolve the configured user key."""
