"""
Toolkit facade and Flask extension.

A Toolkit instance binds one ToolConfiguration to every helper so that
handlers do not have to pass it around::

    tools = Toolkit()
    tools.init_app(app)

    @app.post('/upload')
    def upload():
        files = tools.upload_files(request, UPLOAD_DIR)
        return tools.write_json(201, {'files': files})
"""

import os
from typing import Any, List, Optional, Union

import requests
from flask import Flask, Response
from werkzeug.wrappers import Request

from . import downloads, filesystem, http, json_codec, strings, uploads
from .config import ToolConfiguration
from .exceptions import register_error_handlers
from .json_codec import HeadersLike
from .uploads import UploadedFile

EXTENSION_NAME = 'webtoolkit'


class Toolkit:
    """Helpers sharing one configuration, usable as a Flask extension."""

    def __init__(
        self,
        config: Optional[ToolConfiguration] = None,
        app: Optional[Flask] = None,
        http_client: Any = None,
        http_config: Optional[http.HTTPClientConfig] = None
    ):
        self.config = config
        self.http_client = http_client
        self.http_config = http_config
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """
        Register the toolkit on ``app``.

        Without an explicit configuration one is read from the
        ``WEBTOOLKIT_*`` keys of ``app.config``. ToolkitError subclasses
        raised by views are rendered as JSON error envelopes.
        """
        if self.config is None:
            self.config = ToolConfiguration.from_mapping(app.config)
        app.extensions[EXTENSION_NAME] = self
        register_error_handlers(app)

    @property
    def settings(self) -> ToolConfiguration:
        if self.config is None:
            self.config = ToolConfiguration()
        return self.config

    # String and filesystem helpers

    def random_string(self, length: int) -> str:
        return strings.random_string(length)

    def slugify(self, text: str) -> str:
        return strings.slugify(text)

    def ensure_dir(self, path: Union[str, os.PathLike]) -> None:
        filesystem.ensure_dir(path)

    # Uploads and downloads

    def upload_files(
        self,
        request: Request,
        target_dir: Union[str, os.PathLike],
        rename: bool = True
    ) -> List[UploadedFile]:
        return uploads.upload_files(request, target_dir, rename=rename, config=self.settings)

    def upload_one_file(
        self,
        request: Request,
        target_dir: Union[str, os.PathLike],
        rename: bool = True
    ) -> UploadedFile:
        return uploads.upload_one_file(request, target_dir, rename=rename, config=self.settings)

    def download_static_file(
        self,
        directory: Union[str, os.PathLike],
        filename: str,
        display_name: str
    ) -> Response:
        return downloads.download_static_file(directory, filename, display_name)

    # JSON

    def read_json(self, request: Request, target: Any = None) -> Any:
        return json_codec.read_json(request, target, config=self.settings)

    def write_json(self, status: int, data: Any, headers: Optional[HeadersLike] = None) -> Response:
        return json_codec.write_json(status, data, headers)

    def error_json(
        self,
        error: BaseException,
        status: int = 400,
        headers: Optional[HeadersLike] = None
    ) -> Response:
        return json_codec.error_json(error, status, headers)

    def push_json(self, uri: str, data: Any, client: Any = None) -> requests.Response:
        return http.push_json(uri, data, client=client or self.http_client, config=self.http_config)


def get_toolkit(app: Flask) -> Toolkit:
    """Return the Toolkit registered on ``app``."""
    try:
        return app.extensions[EXTENSION_NAME]
    except KeyError:
        raise RuntimeError("webtoolkit is not initialized on this application") from None


__all__ = ['Toolkit', 'get_toolkit', 'EXTENSION_NAME']
