"""Typed error hierarchy for path, share and transfer operations.

Every error carries an HTTP status and a stable machine code. Messages
are generic and safe to surface to clients: they never include
filesystem paths. Details for operators go to the log at the raise site.
"""


class FileShareError(Exception):
    """Base error for all dirshare operations."""

    code = 'error'
    http_status = 500
    default_message = 'Request failed.'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to dict for API responses."""
        return {'error': self.code, 'message': self.message}

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.message!r}, status={self.http_status})'


class PathNotFoundError(FileShareError):
    """Path does not resolve to an existing target under the root."""

    code = 'not_found'
    http_status = 404
    default_message = 'Path not found.'


class ShareNotFoundError(PathNotFoundError):
    """Share token is unknown or malformed."""

    default_message = 'Invalid or expired share link.'


class AccessDeniedError(FileShareError):
    """Path resolved outside the root boundary."""

    code = 'forbidden'
    http_status = 403
    default_message = 'Access denied.'


class NotADirectoryPathError(FileShareError):
    """Directory operation requested on something that is not a directory."""

    code = 'not_a_directory'
    http_status = 400
    default_message = 'Requested path is not a directory.'


class NotAFilePathError(FileShareError):
    """File operation requested on something that is not a regular file."""

    code = 'not_a_file'
    http_status = 400
    default_message = 'Requested path is not a file.'


class SharedItemNotAFileError(NotAFilePathError):
    """A share token now points at something other than a regular file."""

    http_status = 404
    default_message = 'Shared item is no longer accessible as a file.'


class NotPreviewableError(FileShareError):
    """File type is outside the preview allowlist."""

    code = 'not_previewable'
    http_status = 400
    default_message = 'This file type cannot be previewed.'


class PreviewTooLargeError(FileShareError):
    """Text file exceeds the inline preview limit."""

    code = 'preview_too_large'
    http_status = 413
    default_message = 'File is too large to preview.'


class InternalFileError(FileShareError):
    """I/O failure unrelated to existence or containment."""

    code = 'internal_error'
    http_status = 500
    default_message = 'Could not process path.'


class BadRequestError(FileShareError):
    """Request is missing a required field or has the wrong shape."""

    code = 'bad_request'
    http_status = 400
    default_message = 'Bad request.'
