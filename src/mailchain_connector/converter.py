"""
Konwersja wiadomości Mailchain na standardową wiadomość e-mail.
"""
from dataclasses import dataclass
from datetime import datetime
from email.message import Message
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parsedate_to_datetime
from typing import Optional

from .api_client import SourceMessage

FOOTER = "Delivered by Mailchain IMAP Connector"

# Dokładna postać nagłówka, jaką zwraca API Mailchain (z cudzysłowami)
HTML_CONTENT_TYPE = r'"text/html; charset=\"UTF-8\""'

PROVENANCE_HEADERS = (
    ("X-Mailchain-Block-Id", "block_id"),
    ("X-Mailchain-Block-Id-Encoding", "block_id_encoding"),
    ("X-Mailchain-Transaction-Hash", "transaction_hash"),
    ("X-Mailchain-Transaction-Hash-Encoding", "transaction_hash_encoding"),
)


@dataclass(frozen=True)
class StandardEmail:
    """Wiadomość gotowa do umieszczenia w skrzynce IMAP."""

    message_id: str
    subject: str
    date: Optional[datetime]
    mime: Message

    def as_bytes(self) -> bytes:
        return self.mime.as_bytes()


def content_subtype(content_type: Optional[str]) -> str:
    """Zwraca "html" dla znacznika HTML/UTF-8, w pozostałych przypadkach "plain"."""
    if content_type == HTML_CONTENT_TYPE:
        return "html"
    return "plain"


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parsuje nagłówek Date; zwraca None, jeśli się nie da."""
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def convert_message(record: SourceMessage) -> StandardEmail:
    """
    Tworzy wiadomość e-mail z rekordu API Mailchain.

    Wywoływana wyłącznie dla rekordów o statusie "ok".
    """
    subtype = content_subtype(record.content_type)
    if subtype == "html":
        body = f"{record.body} <br/><br/>{FOOTER}"
    else:
        body = f"{record.body} \r\n{FOOTER}"

    mime_msg = MIMEMultipart("alternative")
    mime_msg.attach(MIMEText(body, subtype, "utf-8"))

    # Nagłówki
    mime_msg["From"] = record.sender or ""
    mime_msg["To"] = record.recipient or ""
    mime_msg["Date"] = record.date or ""
    mime_msg["Message-ID"] = record.message_id or ""
    mime_msg["Subject"] = record.subject

    for header, attribute in PROVENANCE_HEADERS:
        value = getattr(record, attribute)
        mime_msg[header] = "" if value is None else str(value)

    return StandardEmail(
        message_id=record.message_id or "",
        subject=record.subject,
        date=parse_date(record.date),
        mime=mime_msg,
    )
