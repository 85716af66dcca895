"""Job dispatch errors."""


class JobError(RuntimeError):
    """Base class for job dispatch errors."""


class UnknownJobFamilyError(JobError):
    """Raised when enqueueing into a family nobody registered."""

    def __init__(self, family: str):
        self.family = family
        super().__init__(f"Job family '{family}' is not registered")


class UnknownJobNameError(JobError):
    """Raised when a job name is outside the family's enumeration."""

    def __init__(self, family: str, name: str):
        self.family = family
        self.name = name
        super().__init__(f"Job '{name}' is not defined for family '{family}'")


class JobDispatcherClosedError(JobError):
    """Raised when enqueueing after shutdown started."""


class RetryableJobError(JobError):
    """Explicitly retryable handler error."""


class PermanentJobError(JobError):
    """Handler error that must not be retried; the job is failed at once."""
