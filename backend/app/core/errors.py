from datetime import date


class BusCountError(Exception):
    """Base class for reconciliation / cache errors."""


class NotFound(BusCountError):
    """No timetable version covers the requested date."""


class UpstreamQueryFailure(BusCountError):
    """A sub-query of a snapshot failed; the snapshot is aborted and nothing is cached."""


class PrewarmDayFailure(BusCountError):
    def __init__(self, service_date: date, cause: BaseException):
        super().__init__(f"prewarm failed for {service_date.isoformat()}: {cause!r}")
        self.service_date = service_date
        self.cause = cause
