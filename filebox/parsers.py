from rest_framework.exceptions import ParseError
from rest_framework.parsers import BaseParser

from .multipart import extract_boundary, parse_multipart


class RawMultipartParser(BaseParser):
    """
    Reads the whole request body and decodes it with MultipartParser.

    Accepts any media type: a body without a usable boundary simply yields
    no parts, leaving "no file uploaded" to the upload view.
    """
    media_type = '*/*'

    def parse(self, stream, media_type=None, parser_context=None):
        try:
            body = stream.read()
        except OSError as exc:
            raise ParseError(f'Malformed multipart body - {exc}')
        return parse_multipart(body, extract_boundary(media_type))
