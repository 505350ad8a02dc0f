"""
HTTP client utilities for pushing JSON payloads to remote endpoints.

Key Features:
- Pooled requests sessions with default headers and no adapter retries
- A lazily created process-wide default session
- push_json() posting a serialized payload and handing back the raw,
  unconsumed response
- Prometheus counter for push outcomes

Failures are surfaced immediately; nothing here retries or interprets
response status codes.
"""

import threading
from typing import Any, Dict, Optional

import requests
import structlog
from prometheus_client import Counter
from requests.adapters import HTTPAdapter

from .exceptions import RemotePushError
from .json_codec import JSON_CONTENT_TYPE, dumps

logger = structlog.get_logger(__name__)

json_push_counter = Counter(
    'webtoolkit_json_push_total',
    'JSON payloads pushed to remote endpoints by outcome',
    ['outcome']
)


class HTTPClientConfig:
    """
    Settings for sessions created by create_http_client().

    Timeouts always apply so that a push never blocks indefinitely.
    """

    def __init__(
        self,
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        max_connections: int = 100,
        max_connections_per_host: int = 20,
        verify_ssl: bool = True,
        default_headers: Optional[Dict[str, str]] = None,
        user_agent: str = "webtoolkit/1.0"
    ):
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_connections = max_connections
        self.max_connections_per_host = max_connections_per_host
        self.verify_ssl = verify_ssl
        self.default_headers = default_headers or {
            'User-Agent': user_agent,
            'Accept': JSON_CONTENT_TYPE,
        }

    @property
    def timeout(self):
        return (self.connect_timeout, self.read_timeout)


def create_http_client(config: Optional[HTTPClientConfig] = None) -> requests.Session:
    """
    Create a requests session with connection pooling.

    Args:
        config: Optional client configuration

    Returns:
        Configured requests session
    """
    config = config or HTTPClientConfig()
    session = requests.Session()

    adapter = HTTPAdapter(
        pool_connections=config.max_connections_per_host,
        pool_maxsize=config.max_connections,
        pool_block=False,
        max_retries=0
    )
    session.mount('http://', adapter)
    session.mount('https://', adapter)

    session.headers.update(config.default_headers)
    session.verify = config.verify_ssl
    return session


_default_client: Optional[requests.Session] = None
_default_client_lock = threading.Lock()


def default_client() -> requests.Session:
    """Return the shared session, creating it on first use."""
    global _default_client
    with _default_client_lock:
        if _default_client is None:
            _default_client = create_http_client()
        return _default_client


def close_default_client() -> None:
    """Close the shared session; the next push creates a new one."""
    global _default_client
    with _default_client_lock:
        if _default_client is not None:
            _default_client.close()
            _default_client = None


def push_json(
    uri: str,
    data: Any,
    client: Any = None,
    config: Optional[HTTPClientConfig] = None
) -> requests.Response:
    """
    POST ``data`` as JSON to ``uri``.

    The response is returned as received: the status code is not checked
    and the body is neither read nor closed, both are left to the caller.

    Args:
        uri: Destination URL
        data: Value to serialize
        client: Object with a requests-compatible ``post`` method, the
            shared default session when omitted
        config: Supplies the request timeouts

    Returns:
        Raw response object

    Raises:
        JSONSerializationError: If ``data`` cannot be serialized
        RemotePushError: On any transport failure
    """
    payload = dumps(data).encode('utf-8')
    config = config or HTTPClientConfig()
    client = client or default_client()

    try:
        response = client.post(
            uri,
            data=payload,
            headers={'Content-Type': JSON_CONTENT_TYPE},
            stream=True,
            timeout=config.timeout
        )
    except requests.RequestException as e:
        json_push_counter.labels(outcome='error').inc()
        raise RemotePushError(uri, message=f"unable to push JSON to {uri}: {e}") from e

    json_push_counter.labels(outcome='sent').inc()
    logger.debug(
        "JSON pushed",
        uri=uri,
        payload_bytes=len(payload),
        status_code=getattr(response, 'status_code', None)
    )
    return response


__all__ = [
    'HTTPClientConfig',
    'create_http_client',
    'default_client',
    'close_default_client',
    'push_json',
]
