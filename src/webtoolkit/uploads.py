"""
Multipart file upload pipeline.

Parses a multipart/form-data request under a byte ceiling, sniffs every file
part's content type from its first bytes, checks it against the configured
allow-list, and streams accepted files into a target directory under either a
random or the client-supplied name.

Processing is sequential and stops at the first failing file. Files written
before a failure are left on disk; the error carries their records.
"""

import os
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Union

import structlog
from prometheus_client import Counter
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename
from werkzeug.wrappers import Request

from .config import ToolConfiguration
from .exceptions import (
    DisallowedFileTypeError,
    FileStorageError,
    NoFileUploadedError,
    UploadFailedError,
    UploadTooLargeError,
)
from .filesystem import ensure_dir
from .sniffing import SNIFF_LENGTH, detect_content_type
from .strings import random_string

logger = structlog.get_logger(__name__)

upload_files_counter = Counter(
    'webtoolkit_upload_files_total',
    'Uploaded file parts by processing result',
    ['result']
)

upload_bytes_counter = Counter(
    'webtoolkit_upload_bytes_total',
    'Bytes written to disk by the upload pipeline'
)

RANDOM_NAME_LENGTH = 25
COPY_CHUNK_SIZE = 8192


@dataclass(frozen=True)
class UploadedFile:
    """Metadata of one stored upload."""

    original_name: str
    stored_name: str
    byte_size: int
    content_type: str


def file_extension(filename: str) -> str:
    """
    Return the extension of the last path element, dot included.

    ``"photo.tar.gz"`` gives ``".gz"``, ``".bashrc"`` gives ``".bashrc"``
    and a name without a dot gives ``""``.
    """
    basename = filename.replace('\\', '/').rsplit('/', 1)[-1]
    index = basename.rfind('.')
    if index < 0:
        return ''
    return basename[index:]


def upload_files(
    request: Request,
    target_dir: Union[str, os.PathLike],
    rename: bool = True,
    config: Optional[ToolConfiguration] = None
) -> List[UploadedFile]:
    """
    Store every file part of a multipart request in ``target_dir``.

    Args:
        request: Werkzeug or Flask request with a multipart/form-data body
        target_dir: Destination directory, created when missing
        rename: Store under a random 25 character name plus the original
            extension instead of the client-supplied name
        config: Upload limits and allowed content types

    Returns:
        One UploadedFile per stored file, in request order

    Raises:
        UploadTooLargeError: If the body exceeds the upload ceiling
        FileStorageError: If ``target_dir`` cannot be created
        DisallowedFileTypeError: If a file's sniffed type is not allowed
        UploadFailedError: For any other failure while handling a file
    """
    config = config or ToolConfiguration()
    parts = _parse_file_parts(request, config.effective_max_upload_bytes)

    uploaded: List[UploadedFile] = []
    try:
        ensure_dir(target_dir)

        for storage in parts:
            try:
                record = _store_file(storage, target_dir, rename, config)
            except DisallowedFileTypeError as e:
                upload_files_counter.labels(result='rejected').inc()
                e.uploaded = list(uploaded)
                raise
            except UploadFailedError as e:
                upload_files_counter.labels(result='failed').inc()
                e.uploaded = list(uploaded)
                raise
            except (OSError, FileStorageError, ValueError) as e:
                upload_files_counter.labels(result='failed').inc()
                raise UploadFailedError(uploaded=uploaded, details={'filename': storage.filename}) from e

            upload_files_counter.labels(result='stored').inc()
            upload_bytes_counter.inc(record.byte_size)
            uploaded.append(record)
    finally:
        for storage in parts:
            storage.close()

    return uploaded


def upload_one_file(
    request: Request,
    target_dir: Union[str, os.PathLike],
    rename: bool = True,
    config: Optional[ToolConfiguration] = None
) -> UploadedFile:
    """
    Store the files of ``request`` and return the first record.

    Raises:
        NoFileUploadedError: If the request carries no file part
    """
    files = upload_files(request, target_dir, rename=rename, config=config)
    if not files:
        raise NoFileUploadedError()
    return files[0]


def _parse_file_parts(request: Request, max_bytes: int) -> List[FileStorage]:
    content_length = request.content_length
    if content_length is not None and content_length > max_bytes:
        raise UploadTooLargeError(max_bytes)

    # Werkzeug enforces the limit while reading bodies without a length.
    request.max_content_length = max_bytes
    try:
        files = request.files
    except RequestEntityTooLarge as e:
        raise UploadTooLargeError(max_bytes) from e
    except ValueError as e:
        raise UploadFailedError(f"malformed multipart body: {e}") from e

    # Parts without a filename are plain form values.
    return [storage for _, storage in files.items(multi=True) if storage.filename]


def _store_file(
    storage: FileStorage,
    target_dir: Union[str, os.PathLike],
    rename: bool,
    config: ToolConfiguration
) -> UploadedFile:
    stream = storage.stream
    original_name = storage.filename

    head = stream.read(SNIFF_LENGTH)
    if not head:
        raise UploadFailedError("the uploaded file is empty", details={'filename': original_name})

    content_type = detect_content_type(head)
    if not config.is_content_type_allowed(content_type):
        raise DisallowedFileTypeError(content_type, filename=original_name)

    stream.seek(0)

    stored_name = _stored_name(original_name, rename, config.sanitize_file_names)
    destination = os.path.join(target_dir, stored_name)

    byte_size = _copy_to(stream, destination)

    logger.debug(
        "Uploaded file stored",
        original_name=original_name,
        stored_name=stored_name,
        byte_size=byte_size,
        content_type=content_type
    )

    return UploadedFile(
        original_name=original_name,
        stored_name=stored_name,
        byte_size=byte_size,
        content_type=content_type
    )


def _stored_name(original_name: str, rename: bool, sanitize: bool) -> str:
    if rename:
        return random_string(RANDOM_NAME_LENGTH) + file_extension(original_name)

    if not sanitize:
        return original_name

    safe_name = secure_filename(original_name)
    if not safe_name:
        return random_string(RANDOM_NAME_LENGTH) + file_extension(original_name)
    return safe_name


def _copy_to(stream: BinaryIO, destination: str) -> int:
    try:
        outfile = open(destination, 'wb')
    except OSError as e:
        raise FileStorageError(
            f"unable to create file: {e}",
            storage_operation="create_file",
            storage_path=destination
        ) from e

    written = 0
    with outfile:
        while True:
            chunk = stream.read(COPY_CHUNK_SIZE)
            if not chunk:
                break
            outfile.write(chunk)
            written += len(chunk)

    return written


__all__ = ['UploadedFile', 'upload_files', 'upload_one_file', 'file_extension']
