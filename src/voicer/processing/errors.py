"""Exceptions raised by the processing engine."""


class ProcessingError(RuntimeError):
    """Base class for batch processing failures."""


class ProcessingConfigurationError(ProcessingError):
    """Raised when a job cannot be built from the supplied input."""


class ProcessingStateError(ProcessingError):
    """Raised when an operation is not allowed in the job's current state."""


__all__ = [
    "ProcessingConfigurationError",
    "ProcessingError",
    "ProcessingStateError",
]
