from __future__ import annotations


class WABridgeError(Exception):
    """Base error for the wabridge library."""


class AuthFailure(WABridgeError):
    """Session bring-up failed (credential store unreadable, factory error, ...)."""


class TransientDisconnect(WABridgeError):
    """The connection was closed by the network or server and will be re-opened."""

    def __init__(self, status_code: int | None = None) -> None:
        super().__init__(f"connection closed (status={status_code})")
        self.status_code = status_code


class SessionInvalidated(WABridgeError):
    """The account logged out; persisted session state is no longer usable."""


class NotConnectedError(WABridgeError):
    """A send was attempted before the connection reached the open state."""


class ValidationError(WABridgeError):
    """A send was rejected before any network call (bad identifier, degenerate poll)."""


class AcquisitionError(WABridgeError):
    """Media reference could not be resolved to a local file."""

    retryable: bool = False


class MediaSourceError(AcquisitionError):
    """The reference is neither an existing local path nor an http(s) URL."""


class DownloadError(AcquisitionError):
    """
    Download transport failure.

    The caller may retry these.
    """

    retryable = True

    def __init__(self, url: str, reason: str, *, status_code: int | None = None) -> None:
        super().__init__(f"download of {url} failed: {reason}")
        self.url = url
        self.status_code = status_code


class RenameError(AcquisitionError):
    """The downloaded temporary file could not be renamed."""


class UnresolvableContentTypeError(AcquisitionError):
    """No file extension could be derived from the declared content type."""

    def __init__(self, reference: str, content_type: str | None) -> None:
        super().__init__(f"cannot resolve a file type for {reference!r} (content-type={content_type!r})")
        self.reference = reference
        self.content_type = content_type


class TranscodeError(WABridgeError):
    """Audio conversion failed."""

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
