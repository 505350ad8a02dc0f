"""
Exception hierarchy for the web toolkit.

Every failure raised by the toolkit derives from ToolkitError, which carries a
human-readable message, a stable error code, the HTTP status a host
application should answer with, and optional structured details. Errors are
raised to the immediate caller and are never logged or retried here; the host
decides what to do with them.

Flask integration is provided by register_error_handlers(), which renders any
ToolkitError as the standard JSON error envelope.
"""

from typing import Any, Dict, List, Optional

from flask import Flask


class ToolkitError(Exception):
    """
    Base exception class for all toolkit errors.

    Attributes:
        message: Human-readable error message
        code: Error code, the class name unless overridden
        http_status: Status code a host application should respond with
        details: Additional error context
    """

    default_message = "web toolkit error"
    http_status = 500

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.code = code or self.__class__.__name__
        self.details = details or {}
        if http_status is not None:
            self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary format for JSON responses.

        Returns:
            Dictionary representation of the error
        """
        error_dict = {
            'error': True,
            'message': self.message,
            'code': self.code,
        }
        if self.details:
            error_dict['details'] = self.details
        return error_dict


class ConfigurationError(ToolkitError):
    """Invalid toolkit configuration value."""

    default_message = "invalid toolkit configuration"

    def __init__(self, message: Optional[str] = None, field_name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field_name = field_name
        if field_name:
            self.details['field_name'] = field_name


class SlugError(ToolkitError):
    """Input cannot be turned into a URL slug."""

    default_message = "unable to create slug"
    http_status = 400


class FileStorageError(ToolkitError):
    """
    Filesystem failure while creating a directory or a destination file.
    """

    default_message = "file storage operation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        storage_operation: Optional[str] = None,
        storage_path: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.storage_path = storage_path
        if storage_operation:
            self.details['storage_operation'] = storage_operation
        if storage_path:
            self.details['storage_path'] = storage_path


# =============================================================================
# UPLOAD ERRORS
# =============================================================================

class UploadError(ToolkitError):
    """Base class for multipart upload failures."""

    default_message = "upload error"
    http_status = 400


class UploadTooLargeError(UploadError):
    """The multipart body exceeds the configured upload ceiling."""

    default_message = "the uploaded file is too big"
    http_status = 413

    def __init__(self, max_bytes: int, message: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.max_bytes = max_bytes
        self.details['max_bytes'] = max_bytes


class UploadFailedError(UploadError):
    """
    Generic failure while processing an uploaded file.

    Files stored before the failure stay on disk; their records are available
    in ``uploaded``.
    """

    default_message = "upload file error"

    def __init__(self, message: Optional[str] = None, uploaded: Optional[List[Any]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.uploaded = list(uploaded or [])


class DisallowedFileTypeError(UploadFailedError):
    """The sniffed content type of a file is not in the allow-list."""

    default_message = "the uploaded file type is not permitted"
    http_status = 415

    def __init__(
        self,
        content_type: str,
        filename: Optional[str] = None,
        message: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.content_type = content_type
        self.filename = filename
        self.details['content_type'] = content_type
        if filename:
            self.details['filename'] = filename


class NoFileUploadedError(UploadFailedError):
    """The request did not contain any file part."""

    default_message = "no file was uploaded"


# =============================================================================
# JSON ERRORS
# =============================================================================

class JSONRequestError(ToolkitError):
    """Base class for request body decoding failures."""

    default_message = "unable to decode JSON body"
    http_status = 400
    kind = "decode_failed"


class BodyTooLargeError(JSONRequestError):
    http_status = 413
    kind = "body_too_large"

    def __init__(self, max_bytes: int, **kwargs):
        super().__init__(f"body must not be larger than {max_bytes} bytes", **kwargs)
        self.max_bytes = max_bytes
        self.details['max_bytes'] = max_bytes


class MalformedJSONError(JSONRequestError):
    kind = "malformed"

    def __init__(self, offset: int, **kwargs):
        super().__init__(f"body contains badly-formed JSON (at character {offset})", **kwargs)
        self.offset = offset
        self.details['offset'] = offset


class JSONTypeMismatchError(JSONRequestError):
    kind = "type_mismatch"

    def __init__(self, field: Optional[str] = None, **kwargs):
        if field:
            message = f'body contains incorrect JSON type for field "{field}"'
        else:
            message = "body contains incorrect JSON type"
        super().__init__(message, **kwargs)
        self.field = field
        if field:
            self.details['field'] = field


class EmptyBodyError(JSONRequestError):
    default_message = "body must not be empty"
    kind = "empty_body"


class UnknownFieldError(JSONRequestError):
    kind = "unknown_field"

    def __init__(self, field: str, **kwargs):
        super().__init__(f'body contains unknown key "{field}"', **kwargs)
        self.field = field
        self.details['field'] = field


class MultipleJSONValuesError(JSONRequestError):
    default_message = "body must contain only one JSON value"
    kind = "multiple_values"


class JSONDecodeFailedError(JSONRequestError):
    kind = "decode_failed"

    def __init__(self, reason: str, **kwargs):
        super().__init__(f"error unmarshalling JSON: {reason}", **kwargs)
        self.reason = reason


class JSONSerializationError(ToolkitError):
    """Data cannot be serialized to JSON."""

    default_message = "unable to serialize data to JSON"


class RemotePushError(ToolkitError):
    """Transport failure while pushing JSON to a remote endpoint."""

    default_message = "unable to push JSON to remote endpoint"
    http_status = 502

    def __init__(self, uri: str, message: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.uri = uri
        self.details['uri'] = uri


def register_error_handlers(app: Flask) -> None:
    """
    Render every ToolkitError raised by a view as a JSON error envelope.

    Args:
        app: Flask application instance
    """
    # Imported here: json_codec imports this module.
    from .json_codec import error_json

    @app.errorhandler(ToolkitError)
    def handle_toolkit_error(error: ToolkitError):
        return error_json(error, status=error.http_status)


__all__ = [
    'ToolkitError',
    'ConfigurationError',
    'SlugError',
    'FileStorageError',
    'UploadError',
    'UploadTooLargeError',
    'UploadFailedError',
    'DisallowedFileTypeError',
    'NoFileUploadedError',
    'JSONRequestError',
    'BodyTooLargeError',
    'MalformedJSONError',
    'JSONTypeMismatchError',
    'EmptyBodyError',
    'UnknownFieldError',
    'MultipleJSONValuesError',
    'JSONDecodeFailedError',
    'JSONSerializationError',
    'RemotePushError',
    'register_error_handlers',
]
