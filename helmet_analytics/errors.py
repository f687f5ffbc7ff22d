"""Exception types raised inside the analytics engine.

None of these reach the UI: the engine catches them at its edges and
degrades to "no analytics recorded".
"""


class AnalyticsError(Exception):
    """Base class for analytics engine errors."""


class StoreUnavailable(AnalyticsError):
    """The persistent store could not be read or written."""


class MalformedEvent(AnalyticsError):
    """A funnel event is missing required fields or has invalid values."""
