"""
Multipart Decoder Tests

Test suite for the raw multipart/form-data decoder and its DRF parser adapter.
"""

import io

from django.test import SimpleTestCase

from .multipart import MultipartParser, Part, extract_boundary, parse_multipart
from .parsers import RawMultipartParser

BOUNDARY = 'XyZ123boundary'


def build_body(*sections, boundary=BOUNDARY, closing=True):
    """Join raw (headers, content) sections into a multipart body"""
    chunks = []
    for headers, content in sections:
        chunks.append(f'--{boundary}\r\n'.encode())
        chunks.append('\r\n'.join(headers).encode() + b'\r\n\r\n')
        chunks.append(content + b'\r\n')
    if closing:
        chunks.append(f'--{boundary}--\r\n'.encode())
    return b''.join(chunks)


class MultipartParserTests(SimpleTestCase):
    """Tests for MultipartParser"""

    def test_field_and_file_parts(self):
        """Test a plain field followed by a file part"""
        body = build_body(
            (['Content-Disposition: form-data; name="title"'], b'My notes'),
            (['Content-Disposition: form-data; name="file"; filename="a.txt"',
              'Content-Type: text/plain'], b'hello'),
        )

        parts = parse_multipart(body, BOUNDARY)

        self.assertEqual(parts, [
            Part(name='title', content='My notes'),
            Part(name='file', content=b'hello', filename='a.txt', mime_type='text/plain'),
        ])
        self.assertFalse(parts[0].is_file)
        self.assertTrue(parts[1].is_file)

    def test_missing_boundary_yields_no_parts(self):
        """Test that a missing boundary is not an error"""
        body = build_body((['Content-Disposition: form-data; name="title"'], b'x'))

        self.assertEqual(parse_multipart(body, None), [])
        self.assertEqual(parse_multipart(body, ''), [])

    def test_empty_body(self):
        """Test that an empty buffer yields no parts"""
        self.assertEqual(parse_multipart(b'', BOUNDARY), [])

    def test_boundary_not_found(self):
        """Test a body that never mentions the boundary"""
        body = build_body((['Content-Disposition: form-data; name="title"'], b'x'), boundary='other')

        self.assertEqual(parse_multipart(body, BOUNDARY), [])

    def test_file_part_defaults_content_type(self):
        """Test that file parts without Content-Type get application/octet-stream"""
        body = build_body((['Content-Disposition: form-data; name="file"; filename="blob.bin"'], b'\x00\x01'))

        parts = parse_multipart(body, BOUNDARY)

        self.assertEqual(len(parts), 1)
        self.assertEqual(parts[0].mime_type, 'application/octet-stream')
        self.assertEqual(parts[0].content, b'\x00\x01')

    def test_binary_content_is_preserved(self):
        """Test that file bytes, including CRLF pairs inside the content, survive"""
        content = b'line1\r\nline2\r\n\r\n\xff\xfe'
        body = build_body((['Content-Disposition: form-data; name="file"; filename="data.bin"',
                            'Content-Type: application/octet-stream'], content))

        parts = parse_multipart(body, BOUNDARY)

        self.assertEqual(parts[0].content, content)

    def test_only_one_trailing_crlf_stripped(self):
        """Test that only the delimiter CRLF is removed from the body"""
        body = build_body((['Content-Disposition: form-data; name="file"; filename="a.txt"'], b'abc\r\n'))

        parts = parse_multipart(body, BOUNDARY)

        self.assertEqual(parts[0].content, b'abc\r\n')

    def test_part_without_name_is_dropped(self):
        """Test that parts lacking a name attribute are skipped"""
        body = build_body(
            (['Content-Disposition: form-data'], b'ignored'),
            (['Content-Disposition: form-data; name="kept"'], b'value'),
        )

        parts = parse_multipart(body, BOUNDARY)

        self.assertEqual([part.name for part in parts], ['kept'])

    def test_part_without_header_separator_is_dropped(self):
        """Test that a raw part with no blank line is skipped"""
        body = (
            f'--{BOUNDARY}\r\nContent-Disposition: form-data; name="broken"\r\n'
            f'--{BOUNDARY}\r\nContent-Disposition: form-data; name="ok"\r\n\r\nyes\r\n'
            f'--{BOUNDARY}--\r\n'
        ).encode()

        parts = parse_multipart(body, BOUNDARY)

        self.assertEqual(parts, [Part(name='ok', content='yes')])

    def test_unterminated_last_part(self):
        """Test that the buffer end terminates a part with no closing boundary"""
        body = build_body(
            (['Content-Disposition: form-data; name="file"; filename="a.txt"',
              'Content-Type: text/plain'], b'tail'),
            closing=False,
        )

        parts = parse_multipart(body, BOUNDARY)

        self.assertEqual(len(parts), 1)
        self.assertEqual(parts[0].content, b'tail')

    def test_filename_before_name(self):
        """Test that the name attribute is not confused with filename"""
        body = build_body((['Content-Disposition: form-data; filename="a.txt"; name="upload"'], b'x'))

        parts = parse_multipart(body, BOUNDARY)

        self.assertEqual(parts[0].name, 'upload')
        self.assertEqual(parts[0].filename, 'a.txt')

    def test_empty_filename_is_a_field(self):
        """Test that filename="" (no file selected) is treated as a plain field"""
        body = build_body((['Content-Disposition: form-data; name="file"; filename=""'], b''))

        parts = parse_multipart(body, BOUNDARY)

        self.assertEqual(parts, [Part(name='file', content='')])

    def test_content_type_header_case_insensitive(self):
        """Test lower-case content-type header names"""
        body = build_body((['content-disposition: form-data; name="file"; filename="p.png"',
                            'content-type: image/png'], b'\x89PNG'))

        parts = parse_multipart(body, BOUNDARY)

        self.assertEqual(parts[0].mime_type, 'image/png')

    def test_parser_is_reusable(self):
        """Test that one parser instance can decode several bodies"""
        parser = MultipartParser(BOUNDARY)
        body = build_body((['Content-Disposition: form-data; name="a"'], b'1'))

        self.assertEqual(parser.parse(body), parser.parse(body))


class ExtractBoundaryTests(SimpleTestCase):
    """Tests for extract_boundary"""

    def test_bare_boundary(self):
        self.assertEqual(extract_boundary(f'multipart/form-data; boundary={BOUNDARY}'), BOUNDARY)

    def test_quoted_boundary(self):
        self.assertEqual(extract_boundary('multipart/form-data; boundary="a b"'), 'a b')

    def test_no_boundary(self):
        self.assertIsNone(extract_boundary('multipart/form-data'))
        self.assertIsNone(extract_boundary('application/json'))
        self.assertIsNone(extract_boundary(None))
        self.assertIsNone(extract_boundary(''))


class RawMultipartParserTests(SimpleTestCase):
    """Tests for the DRF parser adapter"""

    def test_parse_stream(self):
        """Test decoding a request stream using the boundary from the media type"""
        body = build_body((['Content-Disposition: form-data; name="file"; filename="a.txt"',
                            'Content-Type: text/plain'], b'hello'))

        parts = RawMultipartParser().parse(
            io.BytesIO(body),
            media_type=f'multipart/form-data; boundary={BOUNDARY}',
        )

        self.assertEqual(parts, [Part(name='file', content=b'hello', filename='a.txt', mime_type='text/plain')])

    def test_parse_without_boundary(self):
        """Test that a media type without boundary yields no parts"""
        parts = RawMultipartParser().parse(io.BytesIO(b'{"a": 1}'), media_type='application/json')

        self.assertEqual(parts, [])
