"""Error taxonomy shared by the seeding pipeline."""

from __future__ import annotations


class SeederError(RuntimeError):
    """Base class for every fatal or recorded failure raised by the seeder."""

    error_type = "seeder_error"

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        identifier: str | None = None,
        elapsed: float | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.identifier = identifier
        self.elapsed = elapsed
        self.status_code = status_code

    def describe(self) -> str:
        """Render the message together with whatever context was captured."""

        parts = [str(self)]
        if self.operation:
            parts.append(f"operation={self.operation}")
        if self.identifier:
            parts.append(f"id={self.identifier}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.elapsed is not None:
            parts.append(f"after={self.elapsed:.2f}s")
        return " | ".join(parts)


class ConfigurationError(SeederError):
    """Missing or malformed manifests, invalid settings."""

    error_type = "configuration_error"


class TransientServiceError(SeederError):
    """The service could not be reached; callers retry on a fixed interval."""

    error_type = "transient_service_error"


class ReadinessTimeout(TransientServiceError):
    """The readiness deadline elapsed before the service answered."""

    error_type = "readiness_timeout"


class AuthenticationError(SeederError):
    """Login, password rotation or API key provisioning failed."""

    error_type = "authentication_error"


class SubmissionError(SeederError):
    """The service rejected a BOM upload."""

    error_type = "submission_error"


class PollError(SeederError):
    """A processing-status query failed."""

    error_type = "poll_error"


class DeletionError(SeederError):
    """A project could not be deleted, or fewer projects existed than requested."""

    error_type = "deletion_error"

    def __init__(self, message: str, *, deleted: int = 0, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.deleted = deleted


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "DeletionError",
    "PollError",
    "ReadinessTimeout",
    "SeederError",
    "SubmissionError",
    "TransientServiceError",
]
