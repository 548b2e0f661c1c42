# timebill/errors.py


class TimebillError(Exception):
    """Base class for errors raised by the time tracking layer."""


class FetchFailure(TimebillError):
    """Reading time entries from the database failed."""


class MalformedEntry(TimebillError):
    """A stored entry cannot be aggregated (no start time, or it ends before it starts)."""

    def __init__(self, entry_id, reason):
        super().__init__(f'Time entry {entry_id}: {reason}')
        self.entry_id = entry_id
        self.reason = reason


class InvalidTimeEntry(TimebillError, ValueError):
    """Rejected write: the submitted entry would break the time entry invariants."""
