"""
Rejestr dostarczonych wiadomości (deduplikacja).

Klucz to skrót SHA-256 identyfikatora wiadomości, dzięki czemu surowe
identyfikatory nie są przechowywane na dysku.
"""
import hashlib

import structlog
from sqlalchemy.exc import SQLAlchemyError

from .errors import StorageError
from .models import Database, DeliveredMessage, utcnow

logger = structlog.get_logger(__name__)


def fingerprint(message_id: str) -> str:
    """Zwraca jednokierunkowy skrót identyfikatora wiadomości."""
    return hashlib.sha256(message_id.encode("utf-8")).hexdigest()


class DeliveryLedger:
    """Trwały rejestr: skrót identyfikatora → dostarczona."""

    def __init__(self, db: Database):
        self.db = db

    def is_delivered(self, message_id: str) -> bool:
        """Sprawdza, czy wiadomość została już zapisana jako dostarczona."""
        key = fingerprint(message_id)
        try:
            with self.db.get_session() as session:
                entry = session.get(DeliveredMessage, key)
                return bool(entry is not None and entry.delivered)
        except SQLAlchemyError as e:
            raise StorageError(f"Błąd odczytu rejestru: {e}") from e

    def mark_delivered(self, message_id: str) -> None:
        """Zapisuje wiadomość jako dostarczoną (idempotentnie, w jednej transakcji)."""
        key = fingerprint(message_id)
        try:
            with self.db.get_session() as session, session.begin():
                entry = session.get(DeliveredMessage, key)
                if entry is None:
                    session.add(DeliveredMessage(fingerprint=key, delivered=True))
                elif not entry.delivered:
                    entry.delivered = True
                    entry.delivered_at = utcnow()
        except SQLAlchemyError as e:
            raise StorageError(f"Błąd zapisu rejestru: {e}") from e

        logger.debug("Wiadomość zapisana w rejestrze", fingerprint=key[:12])

    def count(self) -> int:
        """Liczba wiadomości zapisanych jako dostarczone."""
        try:
            with self.db.get_session() as session:
                return (
                    session.query(DeliveredMessage)
                    .filter(DeliveredMessage.delivered.is_(True))
                    .count()
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Błąd odczytu rejestru: {e}") from e
