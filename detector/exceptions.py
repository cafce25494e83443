"""
Errors raised by the analysis pipeline.

Unreadable media is recovered locally into a neutral result, provider errors
become a failed job, and upload validation errors are reported before any job
exists.
"""


class AnalysisError(Exception):
    """Base class for detector errors."""


class UnreadableMediaError(AnalysisError):
    """The file could not be decoded into a pixel raster."""


class RemoteProviderError(AnalysisError):
    """The remote model call failed or returned an unusable payload."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UploadValidationError(AnalysisError):
    status_code = 400


class FileTooLargeError(UploadValidationError):
    status_code = 413

    def __init__(self, size, limit):
        super().__init__(
            f'File size ({size / (1024 * 1024):.1f} MB) exceeds the '
            f'{limit // (1024 * 1024)} MB limit')
        self.size = size
        self.limit = limit


class InvalidUploadError(UploadValidationError):
    pass


class JobNotFound(AnalysisError):
    def __init__(self, job_id):
        super().__init__(f'Analysis job {job_id} does not exist')
        self.job_id = job_id
