from __future__ import annotations


class ActivitySyncError(Exception):
    """Base class for failures surfaced to the upload caller."""


class ParseError(ActivitySyncError):
    """The uploaded file could not be tokenized into rows."""


class DirectoryLookupError(ActivitySyncError):
    """The group directory could not be fetched."""


class GatewayError(ActivitySyncError):
    """A read or write against the record store failed."""


class FetchError(GatewayError):
    """Existing records could not be loaded, so there is no merge basis."""


class UpsertError(GatewayError):
    """The store rejected the batch write."""


class UploadCancelled(ActivitySyncError):
    """The caller cancelled the upload before it finished.

    ``result`` is set when the cancel landed after the records were saved.
    """

    def __init__(self, message: str, result=None) -> None:
        super().__init__(message)
        self.result = result


class VerificationTimeout(ActivitySyncError):
    """The write was acknowledged but never became visible to reads.

    ``result`` carries the otherwise complete upload result so callers can
    still report what was written.
    """

    def __init__(self, message: str, result=None) -> None:
        super().__init__(message)
        self.result = result


class SlotCodecError(ValueError):
    """A stored activity blob is not a valid slot map."""
