"""
StudySense Engine Errors
"""


class StudyEngineError(Exception):
    """Base class for engine errors"""


class OutOfOrderSampleError(StudyEngineError):
    """A sample arrived with a timestamp older than the last accepted one (strict mode only)"""

    def __init__(self, timestamp: float, last_timestamp: float):
        self.timestamp = timestamp
        self.last_timestamp = last_timestamp
        super().__init__(
            f"Sample at {timestamp:.3f} precedes last accepted sample at {last_timestamp:.3f}"
        )


class InvalidDurationError(StudyEngineError):
    """Elapsed duration computed as negative (strict mode only)"""


class RollupUnavailableError(StudyEngineError):
    """The storage collaborator failed to deliver sessions for a rollup request"""
