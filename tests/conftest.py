"""
Global pytest configuration and fixtures.

Key Components:
- Flask application fixture providing request contexts
- Sample payloads recognised by content sniffing (PNG, JPEG, plain text)
- Multipart and JSON request builders backed by app.test_request_context
- Upload directory and configuration fixtures
"""

import io
from typing import Iterable, Optional, Tuple

import pytest
from flask import Flask

from webtoolkit import ToolConfiguration

PNG_BYTES = (
    b'\x89PNG\r\n\x1a\n'
    b'\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89'
    b'\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N'
    b'\x00\x00\x00\x00IEND\xaeB`\x82'
)

JPEG_BYTES = b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00' + b'\x00' * 32

TEXT_BYTES = b'plain text notes\nsecond line\n'


@pytest.fixture
def app():
    """Minimal Flask application for request contexts and test clients."""
    app = Flask(__name__)
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def jpeg_bytes():
    return JPEG_BYTES


@pytest.fixture
def text_bytes():
    return TEXT_BYTES


@pytest.fixture
def upload_dir(tmp_path):
    """Not yet existing nested destination directory."""
    return tmp_path / 'media' / 'uploads'


@pytest.fixture
def image_config():
    """Configuration accepting PNG and JPEG uploads."""
    return ToolConfiguration(allowed_content_types=('image/png', 'image/jpeg'))


@pytest.fixture
def multipart_request(app):
    """
    Build a multipart/form-data request inside an active request context.

    Files are given as ``(field, filename, content)`` tuples; each gets its
    own field name so request order is preserved.
    """
    contexts = []

    def build(files: Iterable[Tuple[str, str, bytes]], form: Optional[dict] = None):
        data = dict(form or {})
        for field, filename, content in files:
            data[field] = (io.BytesIO(content), filename)

        ctx = app.test_request_context(
            '/upload',
            method='POST',
            data=data,
            content_type='multipart/form-data'
        )
        ctx.push()
        contexts.append(ctx)
        return ctx.request

    yield build

    for ctx in reversed(contexts):
        ctx.pop()


@pytest.fixture
def json_request(app):
    """Build a request carrying ``body`` inside an active request context."""
    contexts = []

    def build(body, content_type: str = 'application/json'):
        ctx = app.test_request_context(
            '/items',
            method='POST',
            data=body,
            content_type=content_type
        )
        ctx.push()
        contexts.append(ctx)
        return ctx.request

    yield build

    for ctx in reversed(contexts):
        ctx.pop()
