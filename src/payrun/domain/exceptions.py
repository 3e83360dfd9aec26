class PayrunError(Exception):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(PayrunError):
    """Requested resource does not exist."""


class ConflictError(PayrunError):
    """Operation conflicts with existing state (e.g. duplicate email)."""


class ValidationError(PayrunError):
    """Request is well-formed but semantically invalid (e.g. inverted pay period)."""


class DuplicateJobError(ValidationError):
    """An in-flight payroll job already covers the requested pay period."""

    def __init__(self, message: str, existing_job_id: int) -> None:
        self.existing_job_id = existing_job_id
        super().__init__(message)


class AuthError(PayrunError):
    """No requester identity was supplied."""


class ForbiddenError(PayrunError):
    """Requester's role may not perform this operation."""


class InvalidEmployeeError(PayrunError):
    """Employee record cannot be used for a payroll calculation."""


class NoEligibleEmployeesError(PayrunError):
    """A payroll run matched no active employees."""


class ArtifactWriteError(PayrunError):
    """A payslip document could not be rendered or stored."""


class SummaryWriteError(PayrunError):
    """The payroll summary document could not be written."""


class QueueUnavailableError(PayrunError):
    """The job store backing a queue cannot be reached."""


class InvalidJobStateError(ConflictError):
    """A queue transition was attempted from a state that does not allow it."""
