class TipEstimatorError(Exception):
    """Base class for errors raised by the tip estimator."""


class InvalidInputError(TipEstimatorError, ValueError):
    """Malformed day-of-week, period or hour. Never retried."""


class NotFoundError(TipEstimatorError, LookupError):
    """No aggregate rows match the requested bucket."""


class UpstreamUnavailableError(TipEstimatorError, RuntimeError):
    """Raw trip data, zone lookup or the published table cannot be read."""
