"""Application-level exception types for replkernel."""

from __future__ import annotations


class KernelError(Exception):
    """Base exception for replkernel."""


class ConfigurationError(KernelError):
    """Raised when kernel or connection configuration is invalid."""


class MalformedMessageError(KernelError):
    """Raised when an inbound envelope misses required header fields."""


class CaptureError(KernelError):
    """Base exception for standard stream redirection failures."""


class CaptureBusyError(CaptureError):
    """Raised when output capture is requested while another capture is armed."""


class StreamRestoreError(CaptureError):
    """Raised when the original standard streams could not be put back."""

    def __init__(self, stream_name: str) -> None:
        """Initialize with the name of the stream that failed."""
        super().__init__(f"Unable to restore sys.{stream_name}")
        self.stream_name = stream_name
