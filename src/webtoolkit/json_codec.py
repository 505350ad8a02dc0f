"""
JSON request/response helpers.

Decoding reads a request body under a byte ceiling, requires exactly one JSON
value, optionally validates it against a target type with pydantic in strict
mode, and classifies every failure into a dedicated JSONRequestError
subclass. Encoding produces a Flask response with caller headers, a JSON
content type and a body serialized with ToolkitJSONEncoder.
"""

import base64
import dataclasses
import functools
import json
import math
import re
import types
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from typing import (
    Annotated, Any, Dict, Mapping, Optional, Sequence, Tuple, Union,
    get_args, get_origin, get_type_hints, is_typeddict,
)
from uuid import UUID

from flask import Response
from prometheus_client import Counter
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_serializer
from werkzeug.datastructures import Headers
from werkzeug.wrappers import Request

from .config import ToolConfiguration
from .exceptions import (
    BodyTooLargeError,
    EmptyBodyError,
    JSONDecodeFailedError,
    JSONRequestError,
    JSONSerializationError,
    JSONTypeMismatchError,
    MalformedJSONError,
    MultipleJSONValuesError,
    ToolkitError,
    UnknownFieldError,
)

json_decode_errors_counter = Counter(
    'webtoolkit_json_decode_errors_total',
    'Rejected JSON request bodies by error kind',
    ['kind']
)

JSON_CONTENT_TYPE = 'application/json'
READ_CHUNK_SIZE = 8192

_WHITESPACE = re.compile(r'[ \t\n\r]*')

# pydantic error types reported as a JSON type mismatch
_TYPE_ERROR_TYPES = frozenset({
    'int_from_float', 'int_parsing', 'float_parsing', 'bool_parsing', 'none_required',
})


class ToolkitJSONEncoder(json.JSONEncoder):
    """
    JSON encoder for the value types handlers commonly return:

    - datetime, date and time objects as ISO 8601 strings
    - Decimal as a number
    - UUID and paths as strings
    - Enum members as their value
    - sets as arrays
    - bytes as standard base64
    - dataclass instances and pydantic models as objects
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (datetime, date, time)):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (UUID, PurePath)):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return list(obj)
        if isinstance(obj, (bytes, bytearray)):
            return base64.b64encode(obj).decode('ascii')
        if isinstance(obj, BaseModel):
            return obj.model_dump(mode='json', by_alias=True)
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return dataclasses.asdict(obj)
        return super().default(obj)


def dumps(data: Any) -> str:
    """
    Serialize ``data`` to compact JSON.

    Raises:
        JSONSerializationError: For cyclic structures, NaN or infinite
            floats and unsupported objects
    """
    try:
        return json.dumps(
            data,
            cls=ToolkitJSONEncoder,
            allow_nan=False,
            ensure_ascii=False,
            separators=(',', ':')
        )
    except (TypeError, ValueError, RecursionError) as e:
        raise JSONSerializationError(f"unable to serialize data to JSON: {e}") from e


class JSONEnvelope(BaseModel):
    """Standard response body: ``{"error": ..., "message": ..., "data": ...}``."""

    model_config = ConfigDict(populate_by_name=True)

    is_error: bool = Field(default=False, alias='error')
    message: str = ''
    payload: Optional[Any] = Field(default=None, alias='data')

    @model_serializer(mode='wrap')
    def _omit_empty_payload(self, handler):
        data = handler(self)
        if self.payload is None:
            data.pop('data', None)
            data.pop('payload', None)
        return data


# =============================================================================
# DECODING
# =============================================================================

def read_json(
    request: Request,
    target: Any = None,
    config: Optional[ToolConfiguration] = None
) -> Any:
    """
    Decode the JSON body of ``request``.

    Args:
        request: Werkzeug or Flask request
        target: Type to validate against (pydantic model, dataclass,
            TypedDict, ``dict[str, int]``...) or None for the plain value
        config: Supplies the body ceiling and the unknown field policy

    Returns:
        The validated value, or the decoded JSON value without a target

    Raises:
        JSONRequestError: Subclass describing why the body was rejected
    """
    config = config or ToolConfiguration()
    try:
        body = _read_body(request, config.effective_max_json_bytes)
        return decode_json(body, target, allow_unknown_fields=config.allow_unknown_json_fields)
    except JSONRequestError as e:
        json_decode_errors_counter.labels(kind=e.kind).inc()
        raise


def decode_json(body: Union[bytes, str], target: Any = None, allow_unknown_fields: bool = False) -> Any:
    """
    Decode a body holding exactly one JSON value.

    Same contract as read_json() without the request and the size ceiling.
    """
    if isinstance(body, (bytes, bytearray)):
        try:
            text = bytes(body).decode('utf-8')
        except UnicodeDecodeError as e:
            raise MalformedJSONError(e.start + 1) from e
    else:
        text = body

    start = _WHITESPACE.match(text, 0).end()
    if start == len(text):
        raise EmptyBodyError()

    decoder = json.JSONDecoder(parse_constant=_reject_constant, parse_float=_parse_finite_float)
    try:
        value, end = decoder.raw_decode(text, start)
    except json.JSONDecodeError as e:
        raise MalformedJSONError(_byte_offset(text, e.pos)) from e
    except _NonStandardConstant as e:
        raise MalformedJSONError(_byte_offset(text, text.find(e.constant, start))) from e
    except _NumberOutOfRange as e:
        raise JSONTypeMismatchError() from e

    if _WHITESPACE.match(text, end).end() != len(text):
        raise MultipleJSONValuesError()

    if target is None:
        return value

    try:
        result = _type_adapter(target).validate_json(text[start:end], strict=True)
    except ValidationError as e:
        raise _classify_validation_error(e, value, target, allow_unknown_fields) from e

    if not allow_unknown_fields:
        unknown = _find_unknown_field(value, target, ())
        if unknown:
            raise UnknownFieldError(unknown)

    return result


def _read_body(request: Request, max_bytes: int) -> bytes:
    content_length = request.content_length
    if content_length is not None and content_length > max_bytes:
        raise BodyTooLargeError(max_bytes)

    stream = request.stream
    chunks = []
    total = 0
    while True:
        chunk = stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise BodyTooLargeError(max_bytes)
        chunks.append(chunk)

    return b''.join(chunks)


class _NonStandardConstant(ValueError):
    def __init__(self, constant: str):
        super().__init__(constant)
        self.constant = constant


def _reject_constant(constant: str):
    raise _NonStandardConstant(constant)


class _NumberOutOfRange(ValueError):
    pass


def _parse_finite_float(literal: str) -> float:
    number = float(literal)
    if not math.isfinite(number):
        raise _NumberOutOfRange(literal)
    return number


def _byte_offset(text: str, position: int) -> int:
    # 1-based offset of the offending byte
    return len(text[:position + 1].encode('utf-8', 'surrogatepass'))


@functools.lru_cache(maxsize=256)
def _cached_type_adapter(target: Any) -> TypeAdapter:
    return TypeAdapter(target)


def _type_adapter(target: Any) -> TypeAdapter:
    try:
        return _cached_type_adapter(target)
    except TypeError:
        # unhashable annotation
        return TypeAdapter(target)


def _field_path(loc: Sequence[Any]) -> str:
    return '.'.join(part for part in loc if isinstance(part, str))


def _classify_validation_error(
    error: ValidationError,
    value: Any,
    target: Any,
    allow_unknown_fields: bool
) -> JSONRequestError:
    details = error.errors(include_url=False)

    for detail in details:
        if detail['type'].endswith('_type') or detail['type'] in _TYPE_ERROR_TYPES:
            return JSONTypeMismatchError(_field_path(detail['loc']) or None)

    if not allow_unknown_fields:
        unknown = _find_unknown_field(value, target, ())
        if unknown:
            return UnknownFieldError(unknown)

    for detail in details:
        if detail['type'] == 'extra_forbidden':
            return UnknownFieldError(_field_path(detail['loc']))

    first = details[0]
    path = _field_path(first['loc'])
    reason = f"{path}: {first['msg']}" if path else first['msg']
    return JSONDecodeFailedError(reason)


def _unwrap_annotation(annotation: Any) -> Any:
    while True:
        origin = get_origin(annotation)
        if origin is Annotated:
            annotation = get_args(annotation)[0]
        elif origin is Union or origin is types.UnionType:
            members = [arg for arg in get_args(annotation) if arg is not type(None)]
            if len(members) != 1:
                return annotation
            annotation = members[0]
        else:
            return annotation


def _declared_fields(annotation: Any) -> Optional[Dict[str, Any]]:
    """Map accepted JSON keys to their annotations, None if extras are allowed."""
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        if annotation.model_config.get('extra') == 'allow':
            return None
        fields = {}
        for name, info in annotation.model_fields.items():
            fields[name] = info.annotation
            if info.alias:
                fields[info.alias] = info.annotation
            if isinstance(info.validation_alias, str):
                fields[info.validation_alias] = info.annotation
        return fields

    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        try:
            hints = get_type_hints(annotation)
        except (NameError, TypeError):
            hints = {}
        return {f.name: hints.get(f.name, Any) for f in dataclasses.fields(annotation)}

    if is_typeddict(annotation):
        try:
            return dict(get_type_hints(annotation))
        except (NameError, TypeError):
            return dict(annotation.__annotations__)

    return None


def _is_union(annotation: Any) -> bool:
    origin = get_origin(annotation)
    return origin is Union or origin is types.UnionType


def _is_object_type(annotation: Any) -> bool:
    if isinstance(annotation, type) and (issubclass(annotation, BaseModel) or dataclasses.is_dataclass(annotation)):
        return True
    return is_typeddict(annotation)


def _can_hold(value: Any, annotation: Any) -> bool:
    """Whether a union member could have matched the JSON shape of ``value``."""
    annotation = _unwrap_annotation(annotation)
    if annotation is Any or _is_union(annotation):
        return True
    origin = get_origin(annotation) or annotation
    if isinstance(value, dict):
        return _is_object_type(annotation) or origin in (dict, Mapping)
    if isinstance(value, list):
        return origin in (list, tuple, set, frozenset)
    return True


def _find_unknown_in_union(value: Any, annotation: Any, path: Tuple[str, ...]) -> Optional[str]:
    # a key is unknown only if no member able to hold the value declares it
    found = None
    for member in get_args(annotation):
        if member is type(None) or not _can_hold(value, member):
            continue
        unknown = _find_unknown_field(value, member, path)
        if not unknown:
            return None
        found = found or unknown
    return found


def _find_unknown_field(value: Any, annotation: Any, path: Tuple[str, ...]) -> Optional[str]:
    annotation = _unwrap_annotation(annotation)

    if _is_union(annotation):
        return _find_unknown_in_union(value, annotation, path)

    if isinstance(value, dict):
        fields = _declared_fields(annotation)
        if fields is not None:
            for key, item in value.items():
                if key not in fields:
                    return '.'.join(path + (key,))
                found = _find_unknown_field(item, fields[key], path + (key,))
                if found:
                    return found
            return None

    origin = get_origin(annotation)
    args = get_args(annotation)

    if isinstance(value, list) and origin in (list, tuple, set, frozenset) and args:
        if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
            item_annotations = args
        else:
            item_annotations = (args[0],) * len(value)
        for item, item_annotation in zip(value, item_annotations):
            found = _find_unknown_field(item, item_annotation, path)
            if found:
                return found
        return None

    if isinstance(value, dict) and origin in (dict, Mapping) and len(args) == 2:
        for key, item in value.items():
            found = _find_unknown_field(item, args[1], path + (key,))
            if found:
                return found

    return None


# =============================================================================
# ENCODING
# =============================================================================

HeadersLike = Union[Headers, Mapping[str, Union[str, Sequence[str]]]]


def write_json(status: int, data: Any, headers: Optional[HeadersLike] = None) -> Response:
    """
    Build a JSON response.

    Caller headers are applied first, each key replacing every existing
    value for that key; the JSON content type is set afterwards.

    Args:
        status: HTTP status code
        data: Value to serialize
        headers: Extra response headers

    Returns:
        Flask response object

    Raises:
        JSONSerializationError: If ``data`` cannot be serialized
    """
    body = dumps(data) + '\n'

    response = Response(status=status)
    _apply_headers(response, headers)
    response.headers['Content-Type'] = JSON_CONTENT_TYPE
    response.set_data(body)
    return response


def error_json(
    error: BaseException,
    status: int = 400,
    headers: Optional[HeadersLike] = None
) -> Response:
    """Build a JSON error envelope response for ``error``."""
    message = error.message if isinstance(error, ToolkitError) else str(error)
    envelope = JSONEnvelope(is_error=True, message=message)
    return write_json(status, envelope, headers)


def _apply_headers(response: Response, headers: Optional[HeadersLike]) -> None:
    if not headers:
        return

    if isinstance(headers, Headers):
        items = {key: headers.getlist(key) for key in headers.keys()}
    else:
        items = headers

    for key, values in items.items():
        if isinstance(values, str):
            values = [values]
        response.headers.setlist(key, list(values))


__all__ = [
    'JSONEnvelope',
    'ToolkitJSONEncoder',
    'JSON_CONTENT_TYPE',
    'dumps',
    'read_json',
    'decode_json',
    'write_json',
    'error_json',
]
