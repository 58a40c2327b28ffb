"""
Raw multipart/form-data decoding.

The decoder walks the request body with a byte cursor and a small state
machine instead of relying on Django's upload handlers, so uploads never
touch temporary files and malformed bodies degrade to "no parts" rather
than raising.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Union

from django.utils.http import parse_header_parameters

DEFAULT_FILE_MIME_TYPE = 'application/octet-stream'

HEADER_SEPARATOR = b'\r\n\r\n'
LINE_BREAK = b'\r\n'

NAME_RE = re.compile(r'\bname="([^"]+)"')
FILENAME_RE = re.compile(r'\bfilename="([^"]+)"')
CONTENT_TYPE_RE = re.compile(r'^content-type:[ \t]*(.+?)[ \t]*\r?$', re.IGNORECASE | re.MULTILINE)

SEEKING_BOUNDARY = 'seeking-boundary'
READING_HEADERS = 'reading-headers'
READING_BODY = 'reading-body'


@dataclass
class Part:
    """One named section of a multipart body."""
    name: str
    content: Union[bytes, str]
    filename: Optional[str] = None
    mime_type: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return self.filename is not None


def extract_boundary(content_type: Optional[str]) -> Optional[str]:
    """
    Return the ``boundary`` parameter of a Content-Type header, or None.
    """
    if not content_type:
        return None
    _, params = parse_header_parameters(content_type)
    boundary = params.get('boundary')
    return boundary or None


class MultipartParser:
    """
    Splits a complete request body into Parts.

    Each span between two boundary markers (or between the last marker and
    the end of the buffer) is one raw part. Raw parts without a header/body
    separator or without a ``name`` are skipped.
    """

    def __init__(self, boundary: Optional[str]):
        self.marker = b'--' + boundary.encode('utf-8') if boundary else b''

    def parse(self, body: bytes) -> List[Part]:
        if not self.marker or not body:
            return []

        parts = []
        state = SEEKING_BOUNDARY
        cursor = 0
        part_end = 0
        headers = ''

        while True:
            if state == SEEKING_BOUNDARY:
                start = body.find(self.marker, cursor)
                if start == -1:
                    break
                cursor = start + len(self.marker)
                part_end = body.find(self.marker, cursor)
                if part_end == -1:
                    part_end = len(body)
                state = READING_HEADERS

            elif state == READING_HEADERS:
                separator = body.find(HEADER_SEPARATOR, cursor, part_end)
                if separator == -1:
                    cursor = part_end
                    state = SEEKING_BOUNDARY
                    continue
                headers = body[cursor:separator].decode('utf-8', errors='replace')
                cursor = separator + len(HEADER_SEPARATOR)
                state = READING_BODY

            elif state == READING_BODY:
                content = body[cursor:part_end]
                if content.endswith(LINE_BREAK):
                    content = content[:-len(LINE_BREAK)]
                part = self._build_part(headers, content)
                if part is not None:
                    parts.append(part)
                cursor = part_end
                state = SEEKING_BOUNDARY

        return parts

    @staticmethod
    def _build_part(headers: str, content: bytes) -> Optional[Part]:
        name_match = NAME_RE.search(headers)
        if not name_match:
            return None

        filename_match = FILENAME_RE.search(headers)
        if not filename_match:
            return Part(name=name_match.group(1), content=content.decode('utf-8', errors='replace'))

        content_type_match = CONTENT_TYPE_RE.search(headers)
        return Part(
            name=name_match.group(1),
            content=content,
            filename=filename_match.group(1),
            mime_type=content_type_match.group(1) if content_type_match else DEFAULT_FILE_MIME_TYPE,
        )


def parse_multipart(body: bytes, boundary: Optional[str]) -> List[Part]:
    """Decode ``body`` into Parts using ``boundary``; empty list when it can't."""
    return MultipartParser(boundary).parse(body)
