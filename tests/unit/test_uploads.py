"""
Unit tests for the multipart upload pipeline.

Test Coverage Areas:
- Random and verbatim naming, optional name sanitizing
- Content-type allow-list enforcement from sniffed bytes
- Upload size ceiling, empty parts, requests without files
- Partial results when a later file fails
- Metrics emitted per processed file
"""

import os

import pytest
from prometheus_client import REGISTRY

from webtoolkit import (
    DisallowedFileTypeError,
    FileStorageError,
    NoFileUploadedError,
    ToolConfiguration,
    UploadedFile,
    UploadFailedError,
    UploadTooLargeError,
    upload_files,
    upload_one_file,
)
from webtoolkit.uploads import RANDOM_NAME_LENGTH, file_extension


def _sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestFileExtension:
    """Tests for file_extension()."""

    @pytest.mark.parametrize('filename,expected', [
        ('photo.png', '.png'),
        ('archive.tar.gz', '.gz'),
        ('README', ''),
        ('.bashrc', '.bashrc'),
        ('dir.d/file', ''),
        ('trailing.', '.'),
    ])
    def test_extension(self, filename, expected):
        assert file_extension(filename) == expected


class TestUploadFiles:
    """Tests for upload_files()."""

    def test_renamed_upload(self, multipart_request, upload_dir, image_config, png_bytes):
        request = multipart_request([('file', 'holiday.png', png_bytes)])

        files = upload_files(request, upload_dir, config=image_config)

        assert len(files) == 1
        record = files[0]
        assert isinstance(record, UploadedFile)
        assert record.original_name == 'holiday.png'
        assert record.content_type == 'image/png'
        assert record.byte_size == len(png_bytes)
        assert record.stored_name.endswith('.png')
        assert len(record.stored_name) == RANDOM_NAME_LENGTH + len('.png')
        assert record.stored_name[:RANDOM_NAME_LENGTH].isalnum()
        assert (upload_dir / record.stored_name).read_bytes() == png_bytes

    def test_verbatim_name(self, multipart_request, upload_dir, image_config, png_bytes):
        request = multipart_request([('file', 'holiday.png', png_bytes)])

        files = upload_files(request, upload_dir, rename=False, config=image_config)

        assert files[0].stored_name == 'holiday.png'
        assert (upload_dir / 'holiday.png').read_bytes() == png_bytes

    def test_sanitized_verbatim_name(self, multipart_request, upload_dir, png_bytes):
        config = ToolConfiguration(allowed_content_types=['image/png'], sanitize_file_names=True)
        request = multipart_request([('file', 'my holiday photo.png', png_bytes)])

        files = upload_files(request, upload_dir, rename=False, config=config)

        assert files[0].stored_name == 'my_holiday_photo.png'
        assert files[0].original_name == 'my holiday photo.png'

    def test_multiple_files_keep_request_order(
        self, multipart_request, upload_dir, image_config, png_bytes, jpeg_bytes
    ):
        request = multipart_request([
            ('first', 'a.png', png_bytes),
            ('second', 'b.jpg', jpeg_bytes),
        ])

        files = upload_files(request, upload_dir, config=image_config)

        assert [f.original_name for f in files] == ['a.png', 'b.jpg']
        assert [f.content_type for f in files] == ['image/png', 'image/jpeg']
        assert len(os.listdir(upload_dir)) == 2

    def test_creates_target_directory(self, multipart_request, upload_dir, image_config, png_bytes):
        assert not upload_dir.exists()
        request = multipart_request([('file', 'a.png', png_bytes)])

        upload_files(request, upload_dir, config=image_config)

        assert upload_dir.is_dir()

    def test_disallowed_type(self, multipart_request, upload_dir, image_config, text_bytes):
        request = multipart_request([('file', 'notes.png', text_bytes)])

        with pytest.raises(DisallowedFileTypeError) as exc_info:
            upload_files(request, upload_dir, config=image_config)

        error = exc_info.value
        assert error.message == 'the uploaded file type is not permitted'
        assert error.content_type == 'text/plain; charset=utf-8'
        assert error.filename == 'notes.png'
        assert error.http_status == 415
        assert error.uploaded == []
        assert os.listdir(upload_dir) == []

    def test_empty_allow_list_rejects_everything(self, multipart_request, upload_dir, png_bytes):
        request = multipart_request([('file', 'a.png', png_bytes)])

        with pytest.raises(DisallowedFileTypeError):
            upload_files(request, upload_dir, config=ToolConfiguration())

    def test_allow_list_is_case_insensitive(self, multipart_request, upload_dir, png_bytes):
        request = multipart_request([('file', 'a.png', png_bytes)])
        config = ToolConfiguration(allowed_content_types='IMAGE/PNG')

        files = upload_files(request, upload_dir, config=config)

        assert files[0].content_type == 'image/png'

    def test_failure_keeps_earlier_files(
        self, multipart_request, upload_dir, image_config, png_bytes, text_bytes
    ):
        request = multipart_request([
            ('first', 'a.png', png_bytes),
            ('second', 'b.txt', text_bytes),
        ])

        with pytest.raises(DisallowedFileTypeError) as exc_info:
            upload_files(request, upload_dir, config=image_config)

        uploaded = exc_info.value.uploaded
        assert [f.original_name for f in uploaded] == ['a.png']
        assert os.listdir(upload_dir) == [uploaded[0].stored_name]

    def test_disallowed_is_an_upload_failure(self):
        assert issubclass(DisallowedFileTypeError, UploadFailedError)

    def test_too_large(self, multipart_request, upload_dir, image_config, png_bytes):
        config = ToolConfiguration(max_upload_bytes=32, allowed_content_types=image_config.allowed_content_types)
        request = multipart_request([('file', 'a.png', png_bytes)])

        with pytest.raises(UploadTooLargeError) as exc_info:
            upload_files(request, upload_dir, config=config)

        assert exc_info.value.message == 'the uploaded file is too big'
        assert exc_info.value.max_bytes == 32
        assert exc_info.value.http_status == 413
        assert not upload_dir.exists()

    def test_empty_file_part(self, multipart_request, upload_dir, image_config):
        request = multipart_request([('file', 'empty.png', b'')])

        with pytest.raises(UploadFailedError) as exc_info:
            upload_files(request, upload_dir, config=image_config)

        assert not isinstance(exc_info.value, DisallowedFileTypeError)
        assert exc_info.value.message == 'the uploaded file is empty'

    def test_form_fields_are_ignored(self, multipart_request, upload_dir, image_config):
        request = multipart_request([], form={'title': 'no files here'})

        assert upload_files(request, upload_dir, config=image_config) == []

    def test_unwritable_destination(self, multipart_request, tmp_path, image_config, png_bytes):
        (tmp_path / 'taken.png').mkdir()
        request = multipart_request([('file', 'taken.png', png_bytes)])

        with pytest.raises(UploadFailedError) as exc_info:
            upload_files(request, tmp_path, rename=False, config=image_config)

        assert exc_info.value.message == 'upload file error'
        assert isinstance(exc_info.value.__cause__, FileStorageError)
        assert exc_info.value.details['filename'] == 'taken.png'

    def test_target_dir_cannot_be_created(self, multipart_request, tmp_path, image_config, png_bytes):
        blocker = tmp_path / 'blocker'
        blocker.write_text('file in the way')
        request = multipart_request([('file', 'a.png', png_bytes)])

        with pytest.raises(FileStorageError):
            upload_files(request, blocker / 'uploads', config=image_config)

    def test_metrics(self, multipart_request, upload_dir, image_config, png_bytes, text_bytes):
        stored_before = _sample('webtoolkit_upload_files_total', {'result': 'stored'})
        rejected_before = _sample('webtoolkit_upload_files_total', {'result': 'rejected'})
        bytes_before = _sample('webtoolkit_upload_bytes_total')

        request = multipart_request([
            ('first', 'a.png', png_bytes),
            ('second', 'b.txt', text_bytes),
        ])
        with pytest.raises(DisallowedFileTypeError):
            upload_files(request, upload_dir, config=image_config)

        assert _sample('webtoolkit_upload_files_total', {'result': 'stored'}) == stored_before + 1
        assert _sample('webtoolkit_upload_files_total', {'result': 'rejected'}) == rejected_before + 1
        assert _sample('webtoolkit_upload_bytes_total') == bytes_before + len(png_bytes)


class TestUploadOneFile:
    """Tests for upload_one_file()."""

    def test_returns_first_record(self, multipart_request, upload_dir, image_config, png_bytes, jpeg_bytes):
        request = multipart_request([
            ('first', 'a.png', png_bytes),
            ('second', 'b.jpg', jpeg_bytes),
        ])

        record = upload_one_file(request, upload_dir, config=image_config)

        assert record.original_name == 'a.png'

    def test_no_file(self, multipart_request, upload_dir, image_config):
        request = multipart_request([], form={'title': 'nothing'})

        with pytest.raises(NoFileUploadedError) as exc_info:
            upload_one_file(request, upload_dir, config=image_config)

        assert exc_info.value.message == 'no file was uploaded'
