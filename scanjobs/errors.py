"""Errors reported by the scan job manager.

Every error carries a stable machine-readable ``code`` plus a human-readable
``message``; HTTP and CLI surfaces render both.
"""

from typing import Optional


class ScanError(Exception):
    """Base class for scan errors."""

    code = "scanjobs_scan_error"
    status_code = 500
    default_message = "The scan could not be started."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {
            "code": self.code,
            "message": self.message,
            "data": {"status": self.status_code},
        }


class AlreadyRunning(ScanError):
    """A scan is already queued or running."""

    code = "scanjobs_scan_running"
    status_code = 409
    default_message = "A scan is already running. Please wait for it to finish."


class NoValidSelectors(ScanError):
    """The request resolved to no supported record types."""

    code = "scanjobs_scan_no_types"
    status_code = 400
    default_message = "No valid record types were provided for the scan."


class Forbidden(ScanError):
    """The gateway rejected the caller."""

    code = "rest_forbidden"
    status_code = 401
    default_message = "You are not allowed to manage scans."
