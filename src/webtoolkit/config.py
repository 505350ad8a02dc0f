"""
Toolkit configuration.

ToolConfiguration is an immutable value passed explicitly to every operation
that needs limits or policy. It can be built directly, from any mapping (a
Flask ``app.config`` for instance) or from the process environment, with
python-dotenv loading an optional ``.env`` file first.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Tuple

import structlog
from dotenv import find_dotenv, load_dotenv

from .exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 1024 * 1024
DEFAULT_MAX_JSON_BYTES = 1024 * 1024
DEFAULT_PREFIX = 'WEBTOOLKIT_'

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off', ''}


def _normalize_content_types(values: Iterable[str]) -> Tuple[str, ...]:
    # ordered, case-insensitive set
    seen = set()
    result = []
    for value in values:
        value = value.strip()
        if not value or value.lower() in seen:
            continue
        seen.add(value.lower())
        result.append(value)
    return tuple(result)


@dataclass(frozen=True)
class ToolConfiguration:
    """
    Limits and policy for uploads and JSON decoding.

    Attributes:
        max_upload_bytes: Ceiling for a multipart body, 0 for the 1 MiB default
        allowed_content_types: Sniffed MIME types accepted for uploads; empty
            rejects every file
        max_json_bytes: Ceiling for a JSON body, 0 for the 1 MiB default
        allow_unknown_json_fields: Accept JSON keys the target type lacks
        sanitize_file_names: Pass verbatim upload names through
            werkzeug's secure_filename
    """

    max_upload_bytes: int = 0
    allowed_content_types: Tuple[str, ...] = field(default_factory=tuple)
    max_json_bytes: int = 0
    allow_unknown_json_fields: bool = False
    sanitize_file_names: bool = False

    def __post_init__(self):
        for name in ('max_upload_bytes', 'max_json_bytes'):
            value = getattr(self, name)
            if value is None:
                object.__setattr__(self, name, 0)
            elif value < 0:
                raise ConfigurationError(f"{name} must not be negative", field_name=name)

        content_types = self.allowed_content_types
        if isinstance(content_types, str):
            content_types = content_types.split(',')
        object.__setattr__(self, 'allowed_content_types', _normalize_content_types(content_types or ()))

    @property
    def effective_max_upload_bytes(self) -> int:
        return self.max_upload_bytes or DEFAULT_MAX_UPLOAD_BYTES

    @property
    def effective_max_json_bytes(self) -> int:
        return self.max_json_bytes or DEFAULT_MAX_JSON_BYTES

    def is_content_type_allowed(self, content_type: str) -> bool:
        """Case-insensitive membership test against the allow-list."""
        wanted = content_type.lower()
        return any(allowed.lower() == wanted for allowed in self.allowed_content_types)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], prefix: str = DEFAULT_PREFIX) -> 'ToolConfiguration':
        """
        Build a configuration from prefixed keys of a mapping.

        Recognized keys (with the default prefix): WEBTOOLKIT_MAX_UPLOAD_BYTES,
        WEBTOOLKIT_ALLOWED_CONTENT_TYPES, WEBTOOLKIT_MAX_JSON_BYTES,
        WEBTOOLKIT_ALLOW_UNKNOWN_JSON_FIELDS and WEBTOOLKIT_SANITIZE_FILE_NAMES.
        Missing keys keep their defaults.

        Args:
            mapping: Source mapping such as os.environ or app.config
            prefix: Key prefix

        Returns:
            ToolConfiguration instance

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        values = {}

        for name in ('max_upload_bytes', 'max_json_bytes'):
            key = prefix + name.upper()
            if key in mapping:
                values[name] = _parse_int(mapping[key], key)

        key = prefix + 'ALLOWED_CONTENT_TYPES'
        if key in mapping:
            raw = mapping[key]
            values['allowed_content_types'] = raw.split(',') if isinstance(raw, str) else tuple(raw or ())

        for name in ('allow_unknown_json_fields', 'sanitize_file_names'):
            key = prefix + name.upper()
            if key in mapping:
                values[name] = _parse_bool(mapping[key], key)

        return cls(**values)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, prefix: str = DEFAULT_PREFIX) -> 'ToolConfiguration':
        """
        Build a configuration from environment variables.

        A .env file (explicit path, or the nearest one found) is loaded first
        without overriding variables already set in the environment.
        """
        dotenv_path = env_file or find_dotenv(usecwd=True)
        if dotenv_path:
            load_dotenv(dotenv_path, override=False)
            logger.debug("Loaded environment file", env_file=dotenv_path)
        return cls.from_mapping(os.environ, prefix=prefix)


def _parse_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be an integer", field_name=key)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be an integer, got {value!r}", field_name=key)


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {value!r}", field_name=key)


__all__ = [
    'ToolConfiguration',
    'DEFAULT_MAX_UPLOAD_BYTES',
    'DEFAULT_MAX_JSON_BYTES',
]
