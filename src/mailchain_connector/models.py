"""
Modele bazy danych: rejestr dostarczonych wiadomości i historia cykli synchronizacji.
"""
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import LEDGER_SCHEMA_VERSION
from .errors import StorageError


def utcnow() -> datetime:
    """Bieżący czas UTC bez strefy (SQLite i tak jej nie przechowuje)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Bazowa klasa dla modeli."""

    pass


class DeliveredMessage(Base):
    """Wpis rejestru: skrót identyfikatora wiadomości → dostarczona."""

    __tablename__ = "delivered_messages"

    fingerprint = Column(String(64), primary_key=True)
    delivered = Column(Boolean, nullable=False, default=True)
    delivered_at = Column(DateTime, default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<DeliveredMessage(fingerprint={self.fingerprint[:12]}..., "
            f"delivered={self.delivered})>"
        )


class LedgerMeta(Base):
    """Wersja schematu rejestru."""

    __tablename__ = "ledger_meta"

    id = Column(Integer, primary_key=True)
    schema_version = Column(Integer, nullable=False)


class SyncRun(Base):
    """Model pojedynczego cyklu synchronizacji."""

    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Czas
    started_at = Column(DateTime, default=utcnow)
    finished_at = Column(DateTime, nullable=True)

    # Statystyki
    messages_delivered = Column(Integer, default=0)
    messages_skipped = Column(Integer, default=0)
    messages_failed = Column(Integer, default=0)

    # Status
    status = Column(String(50), default="running")
    error_message = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<SyncRun(id={self.id}, "
            f"started_at={self.started_at}, "
            f"status={self.status})>"
        )

    @property
    def total_processed(self) -> int:
        """Zwraca całkowitą liczbę przetworzonych wiadomości."""
        return (
            (self.messages_delivered or 0)
            + (self.messages_skipped or 0)
            + (self.messages_failed or 0)
        )

    @property
    def duration_seconds(self) -> Optional[float]:
        """Zwraca czas trwania w sekundach."""
        if self.finished_at and self.started_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None


class Database:
    """Wrapper dla operacji bazodanowych."""

    def __init__(self, database_url: str):
        self._ensure_directory(database_url)
        self.engine = create_engine(database_url, echo=False)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    @staticmethod
    def _ensure_directory(database_url: str) -> None:
        """Tworzy katalog dla pliku SQLite, jeśli nie istnieje."""
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Tworzy tabele i weryfikuje wersję schematu rejestru."""
        try:
            Base.metadata.create_all(self.engine)
            with self.get_session() as session, session.begin():
                meta = session.get(LedgerMeta, 1)
                if meta is None:
                    session.add(LedgerMeta(id=1, schema_version=LEDGER_SCHEMA_VERSION))
                elif meta.schema_version != LEDGER_SCHEMA_VERSION:
                    raise StorageError(
                        f"Rejestr ma wersję schematu {meta.schema_version}, "
                        f"oczekiwano {LEDGER_SCHEMA_VERSION}"
                    )
        except SQLAlchemyError as e:
            raise StorageError(f"Nie można zainicjalizować bazy: {e}") from e

    def get_session(self) -> Session:
        """Zwraca nową sesję."""
        return self.SessionLocal()

    def start_sync_run(self, session: Session) -> SyncRun:
        """Rozpoczyna nowy cykl synchronizacji."""
        run = SyncRun(status="running")
        session.add(run)
        session.commit()
        return run

    def finish_sync_run(
        self,
        session: Session,
        run: SyncRun,
        status: str = "completed",
        error_message: Optional[str] = None,
    ) -> None:
        """Kończy cykl synchronizacji."""
        run.finished_at = utcnow()
        run.status = status
        run.error_message = error_message
        session.commit()

    def get_last_sync_run(self, session: Session) -> Optional[SyncRun]:
        """Zwraca ostatni cykl synchronizacji."""
        return (
            session.query(SyncRun)
            .order_by(SyncRun.started_at.desc(), SyncRun.id.desc())
            .first()
        )
