class ValidationError(Exception):
    """Rejected habit input. ``errors`` maps field name to message."""

    def __init__(self, errors):
        super().__init__("Invalid habit data")
        self.errors = errors


class NotFoundError(Exception):
    pass


class StorageError(Exception):
    pass


class StorageUnavailable(StorageError):
    pass


class ConcurrentUpdateError(StorageError):
    """The habit changed since it was read; the write was not applied."""
