class SchedulingError(Exception):
    """Base class for errors raised by the timetable engine."""

    pass


class InvalidGenerationWindowError(SchedulingError):
    """Raised when a generation run is asked to cover an inverted date range."""

    pass
