"""Static file downloads."""

import os
from typing import Union

from flask import Response, send_from_directory


def download_static_file(
    directory: Union[str, os.PathLike],
    filename: str,
    display_name: str
) -> Response:
    """
    Serve ``directory/filename`` as an attachment named ``display_name``.

    Must run inside a Flask request context. Paths escaping ``directory``
    and missing files raise ``werkzeug.exceptions.NotFound``.
    """
    response = send_from_directory(directory, filename)
    response.headers['Content-Disposition'] = f'attachment; filename="{display_name}"'
    return response


__all__ = ['download_static_file']
