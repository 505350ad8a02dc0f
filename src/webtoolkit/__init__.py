"""
webtoolkit - reusable helpers for Flask backends.

Functionality Areas:
- Multipart uploads with content-type sniffing and safe naming
- Strict JSON request decoding with classified errors
- JSON responses, error envelopes and JSON pushes to remote endpoints
- Random strings, URL slugs, directory creation and file downloads

Module Organization:
- uploads: upload pipeline
- sniffing: content-type detection from leading bytes
- json_codec: JSON decoding and response encoding
- http: requests sessions and push_json
- downloads: attachment responses
- strings, filesystem: small supporting helpers
- config, exceptions, logging: configuration, error hierarchy, log setup
- toolkit: Toolkit facade and Flask extension
"""

__version__ = '1.0.0'

# =============================================================================
# CONFIGURATION AND ERRORS
# =============================================================================

from .config import (
    ToolConfiguration,
    DEFAULT_MAX_UPLOAD_BYTES,
    DEFAULT_MAX_JSON_BYTES,
)

from .exceptions import (
    ToolkitError,
    ConfigurationError,
    SlugError,
    FileStorageError,
    UploadError,
    UploadTooLargeError,
    UploadFailedError,
    DisallowedFileTypeError,
    NoFileUploadedError,
    JSONRequestError,
    BodyTooLargeError,
    MalformedJSONError,
    JSONTypeMismatchError,
    EmptyBodyError,
    UnknownFieldError,
    MultipleJSONValuesError,
    JSONDecodeFailedError,
    JSONSerializationError,
    RemotePushError,
    register_error_handlers,
)

# =============================================================================
# SUPPORTING HELPERS
# =============================================================================

from .strings import random_string, slugify, RANDOM_STRING_ALPHABET
from .filesystem import ensure_dir
from .sniffing import detect_content_type
from .downloads import download_static_file
from .logging import configure_logging

# =============================================================================
# UPLOADS
# =============================================================================

from .uploads import UploadedFile, upload_files, upload_one_file

# =============================================================================
# JSON
# =============================================================================

from .json_codec import (
    JSONEnvelope,
    ToolkitJSONEncoder,
    read_json,
    decode_json,
    write_json,
    error_json,
)

from .http import (
    HTTPClientConfig,
    create_http_client,
    close_default_client,
    push_json,
)

from .toolkit import Toolkit, get_toolkit

__all__ = [
    '__version__',

    # Configuration and errors
    'ToolConfiguration',
    'DEFAULT_MAX_UPLOAD_BYTES',
    'DEFAULT_MAX_JSON_BYTES',
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

    # Supporting helpers
    'random_string',
    'slugify',
    'RANDOM_STRING_ALPHABET',
    'ensure_dir',
    'detect_content_type',
    'download_static_file',
    'configure_logging',

    # Uploads
    'UploadedFile',
    'upload_files',
    'upload_one_file',

    # JSON
    'JSONEnvelope',
    'ToolkitJSONEncoder',
    'read_json',
    'decode_json',
    'write_json',
    'error_json',
    'HTTPClientConfig',
    'create_http_client',
    'close_default_client',
    'push_json',

    # Facade
    'Toolkit',
    'get_toolkit',
]
