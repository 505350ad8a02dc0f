"""
Content-type sniffing from a byte prefix.

Implements the signature table of the WHATWG MIME Sniffing Standard in the
same order and with the same results as the algorithm most HTTP servers use,
so that a given byte prefix always maps to the same MIME type. At most the
first SNIFF_LENGTH bytes are considered and the result always is a valid MIME
type, ``application/octet-stream`` when nothing else matches.
"""

from typing import List, Optional

SNIFF_LENGTH = 512

DEFAULT_CONTENT_TYPE = 'application/octet-stream'

# Whitespace bytes skipped before HTML/XML signatures and the text check.
_WHITESPACE = frozenset(b'\t\n\x0c\r ')

# Bytes that may terminate an HTML tag signature.
_TAG_TERMINATORS = frozenset(b' >')


def _first_non_whitespace(data: bytes) -> int:
    index = 0
    while index < len(data) and data[index] in _WHITESPACE:
        index += 1
    return index


class _Signature:
    def match(self, data: bytes, first_non_ws: int) -> Optional[str]:
        raise NotImplementedError


class _ExactSignature(_Signature):
    def __init__(self, prefix: bytes, content_type: str):
        self.prefix = prefix
        self.content_type = content_type

    def match(self, data, first_non_ws):
        if data.startswith(self.prefix):
            return self.content_type
        return None


class _MaskedSignature(_Signature):
    def __init__(self, mask: bytes, pattern: bytes, content_type: str, skip_whitespace: bool = False):
        if len(mask) != len(pattern):
            raise ValueError("mask and pattern must have the same length")
        self.mask = mask
        self.pattern = pattern
        self.content_type = content_type
        self.skip_whitespace = skip_whitespace

    def match(self, data, first_non_ws):
        if self.skip_whitespace:
            data = data[first_non_ws:]
        if len(data) < len(self.pattern):
            return None
        for index, expected in enumerate(self.pattern):
            if data[index] & self.mask[index] != expected:
                return None
        return self.content_type


class _HTMLSignature(_Signature):
    """Case-insensitive tag prefix followed by a space or ``>``."""

    def __init__(self, tag: bytes):
        self.tag = tag

    def match(self, data, first_non_ws):
        data = data[first_non_ws:]
        if len(data) < len(self.tag) + 1:
            return None
        for index, expected in enumerate(self.tag):
            actual = data[index]
            if 0x41 <= expected <= 0x5A:
                actual &= 0xDF
            if actual != expected:
                return None
        if data[len(self.tag)] not in _TAG_TERMINATORS:
            return None
        return 'text/html; charset=utf-8'


class _MP4Signature(_Signature):
    def match(self, data, first_non_ws):
        if len(data) < 12:
            return None
        box_size = int.from_bytes(data[:4], 'big')
        if len(data) < box_size or box_size % 4 != 0:
            return None
        if data[4:8] != b'ftyp':
            return None
        for start in range(8, box_size, 4):
            if start == 12:
                # Version of the major brand.
                continue
            if data[start:start + 3] == b'mp4':
                return 'video/mp4'
        return None


class _TextSignature(_Signature):
    def match(self, data, first_non_ws):
        for byte in data[first_non_ws:]:
            if byte <= 0x08 or byte == 0x0B or 0x0E <= byte <= 0x1A or 0x1C <= byte <= 0x1F:
                return None
        return 'text/plain; charset=utf-8'


_HTML_TAGS = [
    b'<!DOCTYPE HTML', b'<HTML', b'<HEAD', b'<SCRIPT', b'<IFRAME', b'<H1', b'<DIV',
    b'<FONT', b'<TABLE', b'<A', b'<STYLE', b'<TITLE', b'<B', b'<BODY', b'<BR', b'<P',
    b'<!--',
]

_SIGNATURES: List[_Signature] = [_HTMLSignature(tag) for tag in _HTML_TAGS] + [
    _MaskedSignature(b'\xFF\xFF\xFF\xFF\xFF', b'<?xml', 'text/xml; charset=utf-8', skip_whitespace=True),
    _ExactSignature(b'%PDF-', 'application/pdf'),
    _ExactSignature(b'%!PS-Adobe-', 'application/postscript'),

    # UTF byte order marks
    _MaskedSignature(b'\xFF\xFF\x00\x00', b'\xFE\xFF\x00\x00', 'text/plain; charset=utf-16be'),
    _MaskedSignature(b'\xFF\xFF\x00\x00', b'\xFF\xFE\x00\x00', 'text/plain; charset=utf-16le'),
    _MaskedSignature(b'\xFF\xFF\xFF\x00', b'\xEF\xBB\xBF\x00', 'text/plain; charset=utf-8'),

    # Images
    _ExactSignature(b'\x00\x00\x01\x00', 'image/x-icon'),
    _ExactSignature(b'\x00\x00\x02\x00', 'image/x-icon'),
    _ExactSignature(b'BM', 'image/bmp'),
    _ExactSignature(b'GIF87a', 'image/gif'),
    _ExactSignature(b'GIF89a', 'image/gif'),
    _MaskedSignature(
        b'\xFF\xFF\xFF\xFF\x00\x00\x00\x00\xFF\xFF\xFF\xFF\xFF\xFF',
        b'RIFF\x00\x00\x00\x00WEBPVP',
        'image/webp'
    ),
    _ExactSignature(b'\x89PNG\x0D\x0A\x1A\x0A', 'image/png'),
    _ExactSignature(b'\xFF\xD8\xFF', 'image/jpeg'),

    # Audio and video, in the order the standard prescribes
    _MaskedSignature(b'\xFF\xFF\xFF\xFF', b'.snd', 'audio/basic'),
    _MaskedSignature(
        b'\xFF\xFF\xFF\xFF\x00\x00\x00\x00\xFF\xFF\xFF\xFF',
        b'FORM\x00\x00\x00\x00AIFF',
        'audio/aiff'
    ),
    _MaskedSignature(b'\xFF\xFF\xFF', b'ID3', 'audio/mpeg'),
    _MaskedSignature(b'\xFF\xFF\xFF\xFF\xFF', b'OggS\x00', 'application/ogg'),
    _MaskedSignature(b'\xFF\xFF\xFF\xFF\xFF\xFF\xFF\xFF', b'MThd\x00\x00\x00\x06', 'audio/midi'),
    _MaskedSignature(
        b'\xFF\xFF\xFF\xFF\x00\x00\x00\x00\xFF\xFF\xFF\xFF',
        b'RIFF\x00\x00\x00\x00AVI ',
        'video/avi'
    ),
    _MaskedSignature(
        b'\xFF\xFF\xFF\xFF\x00\x00\x00\x00\xFF\xFF\xFF\xFF',
        b'RIFF\x00\x00\x00\x00WAVE',
        'audio/wave'
    ),
    _MP4Signature(),
    _ExactSignature(b'\x1A\x45\xDF\xA3', 'video/webm'),

    # Fonts: 34 ignored bytes followed by "LP"
    _MaskedSignature(b'\x00' * 34 + b'\xFF\xFF', b'\x00' * 34 + b'LP', 'application/vnd.ms-fontobject'),
    _ExactSignature(b'\x00\x01\x00\x00', 'font/ttf'),
    _ExactSignature(b'OTTO', 'font/otf'),
    _ExactSignature(b'ttcf', 'font/collection'),
    _ExactSignature(b'wOFF', 'font/woff'),
    _ExactSignature(b'wOF2', 'font/woff2'),

    # Archives
    _ExactSignature(b'\x1F\x8B\x08', 'application/x-gzip'),
    _ExactSignature(b'PK\x03\x04', 'application/zip'),
    _ExactSignature(b'Rar!\x1A\x07\x00', 'application/x-rar-compressed'),
    _ExactSignature(b'Rar!\x1A\x07\x01\x00', 'application/x-rar-compressed'),

    _ExactSignature(b'\x00\x61\x73\x6D', 'application/wasm'),

    # Must stay last.
    _TextSignature(),
]


def detect_content_type(data: bytes) -> str:
    """
    Return the MIME type sniffed from the first SNIFF_LENGTH bytes of ``data``.

    Args:
        data: Leading bytes of the content; longer input is truncated

    Returns:
        MIME type string, possibly with a charset parameter
    """
    data = bytes(data[:SNIFF_LENGTH])
    first_non_ws = _first_non_whitespace(data)

    for signature in _SIGNATURES:
        content_type = signature.match(data, first_non_ws)
        if content_type:
            return content_type

    return DEFAULT_CONTENT_TYPE


__all__ = ['detect_content_type', 'SNIFF_LENGTH', 'DEFAULT_CONTENT_TYPE']
