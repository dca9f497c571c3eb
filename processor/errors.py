"""Exceptions raised while extracting events from a guide."""


class ExtractionError(Exception):
    """Base class for extraction failures."""


class MalformedInputError(ExtractionError):
    """The document stream could not be read or decoded."""


class UnresolvedWeekdayError(ExtractionError):
    """A date heading named a weekday outside the known vocabulary."""

    def __init__(self, weekday: str):
        super().__init__(f"Unrecognized weekday: {weekday!r}")
        self.weekday = weekday


class TimeParseError(ExtractionError):
    """A matched time expression could not be converted to a clock time."""
