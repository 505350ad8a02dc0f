"""Unit tests for download_static_file()."""

import pytest
from werkzeug.exceptions import NotFound

from webtoolkit import download_static_file


@pytest.fixture
def static_dir(tmp_path):
    directory = tmp_path / 'static'
    directory.mkdir()
    (directory / 'report-2024.csv').write_bytes(b'id,total\n1,10\n')
    (tmp_path / 'secret.txt').write_text('do not serve')
    return directory


class TestDownloadStaticFile:
    """Attachment responses for files below a directory."""

    def test_attachment_with_display_name(self, app, static_dir):
        with app.test_request_context('/download'):
            response = download_static_file(static_dir, 'report-2024.csv', 'Annual report.csv')
            response.direct_passthrough = False

            assert response.status_code == 200
            assert response.headers['Content-Disposition'] == 'attachment; filename="Annual report.csv"'
            assert response.get_data() == b'id,total\n1,10\n'
            response.close()

    def test_missing_file(self, app, static_dir):
        with app.test_request_context('/download'):
            with pytest.raises(NotFound):
                download_static_file(static_dir, 'missing.csv', 'missing.csv')

    def test_path_traversal_is_refused(self, app, static_dir):
        with app.test_request_context('/download'):
            with pytest.raises(NotFound):
                download_static_file(static_dir, '../secret.txt', 'secret.txt')
