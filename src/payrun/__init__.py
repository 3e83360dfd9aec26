"""Employee payroll backend: job queue, payroll worker and HTTP API."""

__version__ = "0.3.0"
