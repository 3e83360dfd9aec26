"""Importing this package registers every table on ``SQLModel.metadata``."""
from payrun.models.core import Employee, EmployeeStatus, User, UserRole  # noqa: F401
from payrun.models.jobs import JobRecord  # noqa: F401
