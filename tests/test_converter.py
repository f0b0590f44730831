"""
Testy konwersji wiadomości Mailchain na e-mail.
"""
import email
from datetime import datetime, timezone

import pytest

from mailchain_connector.api_client import MailchainClient
from mailchain_connector.converter import (
    FOOTER,
    HTML_CONTENT_TYPE,
    content_subtype,
    convert_message,
    parse_date,
)


@pytest.fixture
def parse(settings):
    """Zamienia słownik API na SourceMessage."""
    client = MailchainClient(settings)
    return client._parse_message


def body_part(converted):
    parts = converted.mime.get_payload()
    assert len(parts) == 1
    return parts[0]


class TestContentSubtype:
    """Testy rozpoznawania typu treści."""

    def test_html_marker(self):
        assert content_subtype(r'"text/html; charset=\"UTF-8\""') == "html"
        assert content_subtype(HTML_CONTENT_TYPE) == "html"

    @pytest.mark.parametrize(
        "content_type",
        [
            r'"text/plain; charset=\"UTF-8\""',
            'text/html; charset="UTF-8"',
            "application/json",
            "",
            None,
        ],
    )
    def test_everything_else_is_plain(self, content_type):
        assert content_subtype(content_type) == "plain"


class TestConvertMessage:
    """Testy funkcji convert_message."""

    def test_html_body(self, parse, make_message):
        record = parse(make_message("<m1@mailchain>", content_type=HTML_CONTENT_TYPE, body="<p>Hi</p>"))

        converted = convert_message(record)
        part = body_part(converted)

        assert part.get_content_type() == "text/html"
        text = part.get_payload(decode=True).decode("utf-8")
        assert text.startswith("<p>Hi</p>")
        assert text.endswith("<br/><br/>" + FOOTER)

    def test_plain_body(self, parse, make_message):
        record = parse(make_message("<m2@mailchain>", body="Hello there"))

        converted = convert_message(record)
        part = body_part(converted)

        assert part.get_content_type() == "text/plain"
        text = part.get_payload(decode=True).decode("utf-8")
        assert text.startswith("Hello there")
        assert text.endswith("\r\n" + FOOTER)

    def test_unknown_content_type_is_plain(self, parse, make_message):
        record = parse(make_message("<m3@mailchain>", content_type="text/markdown"))

        part = body_part(convert_message(record))

        assert part.get_content_type() == "text/plain"

    def test_headers_copied(self, parse, make_message):
        data = make_message("<m4@mailchain>")
        converted = convert_message(parse(data))

        assert converted.mime["From"] == data["headers"]["from"]
        assert converted.mime["To"] == data["headers"]["to"]
        assert converted.mime["Date"] == data["headers"]["date"]
        assert converted.mime["Message-ID"] == "<m4@mailchain>"
        assert converted.mime["Subject"] == "Subject <m4@mailchain>"
        assert converted.message_id == "<m4@mailchain>"

    def test_provenance_headers(self, parse, make_message):
        converted = convert_message(parse(make_message("<m5@mailchain>")))

        assert converted.mime["X-Mailchain-Block-Id"] == "0x5c1"
        assert converted.mime["X-Mailchain-Block-Id-Encoding"] == "hex/0x-prefix"
        assert converted.mime["X-Mailchain-Transaction-Hash"] == "0xabcdef"
        assert converted.mime["X-Mailchain-Transaction-Hash-Encoding"] == "hex/0x-prefix"

    def test_provenance_headers_set_when_missing(self, parse, make_message):
        data = make_message("<m6@mailchain>")
        for key in ("block-id", "block-id-encoding", "transaction-hash", "transaction-hash-encoding"):
            del data[key]

        converted = convert_message(parse(data))

        for header in (
            "X-Mailchain-Block-Id",
            "X-Mailchain-Block-Id-Encoding",
            "X-Mailchain-Transaction-Hash",
            "X-Mailchain-Transaction-Hash-Encoding",
        ):
            assert header in converted.mime
            assert converted.mime[header] == ""

    def test_date_parsed(self, parse, make_message):
        converted = convert_message(parse(make_message("<m7@mailchain>")))
        assert converted.date == datetime(2020, 1, 14, 10, 30, tzinfo=timezone.utc)

    def test_rendered_bytes_parse_back(self, parse, make_message):
        converted = convert_message(parse(make_message("<m8@mailchain>")))

        parsed = email.message_from_bytes(converted.as_bytes())

        assert parsed["Message-ID"] == "<m8@mailchain>"
        assert parsed["X-Mailchain-Transaction-Hash"] == "0xabcdef"


class TestParseDate:
    """Testy parsowania nagłówka Date."""

    def test_invalid_date(self):
        assert parse_date("not a date") is None

    def test_missing_date(self):
        assert parse_date(None) is None
        assert parse_date("") is None
