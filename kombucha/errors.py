class KombuchaError(Exception):
    """Base class for errors raised by the fermentation tracker."""


class InvalidDuration(KombuchaError, ValueError):
    """Raised when a fermentation is started with a non-positive day count."""

    def __init__(self, days):
        self.days = days
        super().__init__(f"Duration must be a positive number of days, got {days!r}")


class InvalidDates(KombuchaError, ValueError):
    """Raised when a batch's dates and day count disagree."""

    def __init__(self, batch_id, reason):
        self.batch_id = batch_id
        self.reason = reason
        super().__init__(f"Batch {batch_id!r} has inconsistent dates: {reason}")


class InvalidRating(KombuchaError, ValueError):
    """Raised when a rating falls outside the 1-5 scale."""

    def __init__(self, rating):
        self.rating = rating
        super().__init__(f"Rating must be between 1 and 5, got {rating!r}")


class NotFound(KombuchaError, LookupError):
    """Raised when an operation references a batch that does not exist."""

    def __init__(self, batch_id, collection="active"):
        self.batch_id = batch_id
        self.collection = collection
        if batch_id is None:
            super().__init__(f"No {collection} batch")
        else:
            super().__init__(f"No {collection} batch with id {batch_id!r}")


class PersistenceFailure(KombuchaError):
    """Raised when state cannot be written to the local store."""

    def __init__(self, key, reason):
        self.key = key
        self.reason = reason
        super().__init__(f"Could not persist {key!r}: {reason}")


class DecodeFailure(KombuchaError):
    """Raised when persisted data cannot be decoded."""

    def __init__(self, key, reason):
        self.key = key
        self.reason = reason
        super().__init__(f"Could not decode {key!r}: {reason}")
