"""
Sesja IMAP używana do umieszczania wiadomości w skrzynce użytkownika.
"""
import ssl
from datetime import datetime
from enum import Enum
from typing import Optional

import structlog
from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError

from .config import Settings
from .errors import ConnectivityError, MailboxError

logger = structlog.get_logger(__name__)


class SessionState(str, Enum):
    """Stan sesji IMAP."""

    DISCONNECTED = "disconnected"
    CONNECTED_AUTHENTICATED = "connected_authenticated"


class IMAPMailbox:
    """Klient IMAP do operacji na skrzynce pocztowej."""

    def __init__(self, settings: Settings, client_factory=IMAPClient):
        self.settings = settings
        self._client_factory = client_factory
        self._client: Optional[IMAPClient] = None
        self._delimiter: Optional[str] = None
        self.state = SessionState.DISCONNECTED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

    @property
    def is_connected(self) -> bool:
        return self.state == SessionState.CONNECTED_AUTHENTICATED

    def connect(self) -> None:
        """
        Łączy się z serwerem IMAP i loguje.

        Najpierw próbowany jest mechanizm LOGIN, potem AUTHENTICATE PLAIN.
        Jeśli oba zawiodą, sesja pozostaje rozłączona.
        """
        self.disconnect()

        logger.info(
            "Łączenie z serwerem IMAP",
            host=self.settings.imap_host,
            port=self.settings.imap_port,
        )

        ssl_context = ssl.create_default_context() if self.settings.imap_ssl else None

        try:
            client = self._client_factory(
                self.settings.imap_host,
                port=self.settings.imap_port,
                ssl=self.settings.imap_ssl,
                ssl_context=ssl_context,
            )
        except (IMAPClientError, OSError) as e:
            raise ConnectivityError(f"Nie można połączyć się z serwerem IMAP: {e}") from e

        username = self.settings.imap_username
        password = self.settings.imap_password.get_secret_value()

        try:
            client.login(username, password)
        except (IMAPClientError, OSError) as login_error:
            logger.debug("Logowanie LOGIN nieudane, próba PLAIN", error=str(login_error))
            try:
                client.plain_login(username, password)
            except (IMAPClientError, OSError) as e:
                self._close_quietly(client)
                raise ConnectivityError(f"Logowanie do serwera IMAP nieudane: {e}") from e

        self._client = client
        self.state = SessionState.CONNECTED_AUTHENTICATED
        logger.info("Połączono z serwerem IMAP")

    def disconnect(self) -> None:
        """Rozłącza się z serwerem IMAP."""
        if self._client is not None:
            self._close_quietly(self._client)
            self._client = None
            logger.info("Rozłączono z serwerem IMAP")
        self._delimiter = None
        self.state = SessionState.DISCONNECTED

    @staticmethod
    def _close_quietly(client) -> None:
        try:
            client.logout()
        except (IMAPClientError, OSError) as e:
            logger.debug("Błąd przy wylogowaniu", error=str(e))

    def is_usable(self) -> bool:
        """
        Sprawdza, czy sesja faktycznie działa.

        Otwarte gniazdo nie oznacza aktywnej sesji, więc wymagane jest
        udane i niepuste listowanie folderów.
        """
        if not self.is_connected:
            return False
        try:
            return bool(self._client.list_folders())
        except (IMAPClientError, OSError) as e:
            logger.warning("Sesja IMAP nieaktywna", error=str(e))
            return False

    def ensure_connected(self) -> None:
        """Zapewnia aktywną, zalogowaną sesję (wykorzystuje istniejącą, jeśli działa)."""
        if self.is_usable():
            return
        self.connect()
        if not self.is_usable():
            self.disconnect()
            raise ConnectivityError("Serwer IMAP nie zwrócił listy folderów po zalogowaniu")

    def test_connection(self) -> bool:
        """Sprawdza dostępność serwera IMAP."""
        try:
            self.ensure_connected()
        except ConnectivityError as e:
            logger.warning("Serwer IMAP niedostępny", error=str(e))
            return False
        return True

    @property
    def delimiter(self) -> str:
        """Separator hierarchii folderów zgłaszany przez serwer (zapamiętywany na czas sesji)."""
        if self._delimiter is None:
            folders = self.list_folders()
            if not folders or not folders[0][1]:
                raise MailboxError("Serwer IMAP nie zgłosił separatora folderów")
            delimiter = folders[0][1]
            self._delimiter = delimiter.decode() if isinstance(delimiter, bytes) else str(delimiter)
        return self._delimiter

    def _require_client(self) -> IMAPClient:
        if self._client is None or not self.is_connected:
            raise ConnectivityError("Sesja IMAP nie jest połączona")
        return self._client

    def list_folders(self, directory: str = "", pattern: str = "*") -> list[tuple]:
        """Zwraca listę folderów (flags, delimiter, name)."""
        try:
            return self._require_client().list_folders(directory, pattern)
        except (IMAPClientError, OSError) as e:
            raise ConnectivityError(f"Błąd listowania folderów: {e}") from e

    def folder_exists(self, folder: str) -> bool:
        """Sprawdza istnienie folderu przez LIST."""
        try:
            return bool(self._require_client().list_folders("", folder))
        except (IMAPClientError, OSError) as e:
            raise MailboxError(f"Błąd sprawdzania folderu {folder}: {e}") from e

    def create_folder(self, folder: str) -> None:
        """Tworzy folder."""
        try:
            self._require_client().create_folder(folder)
        except (IMAPClientError, OSError) as e:
            raise MailboxError(f"Nie można utworzyć folderu {folder}: {e}") from e
        logger.debug("Folder utworzony", folder=folder)

    def select_folder(self, folder: str) -> None:
        """Wybiera folder w trybie odczytu i zapisu."""
        try:
            self._require_client().select_folder(folder)
        except (IMAPClientError, OSError) as e:
            raise MailboxError(f"Nie można wybrać folderu {folder}: {e}") from e

    def search_by_header(self, header_name: str, header_value: str) -> list[int]:
        """Szuka wiadomości po nagłówku w wybranym folderze."""
        try:
            return self._require_client().search(["HEADER", header_name, header_value])
        except (IMAPClientError, OSError) as e:
            raise MailboxError(f"Błąd wyszukiwania {header_name}: {e}") from e

    def message_exists(self, message_id: str) -> bool:
        """Sprawdza, czy wiadomość o danym Message-ID jest już w wybranym folderze."""
        return len(self.search_by_header("Message-ID", message_id)) > 0

    def append(self, folder: str, raw_message: bytes, msg_time: Optional[datetime] = None) -> None:
        """Dodaje wiadomość do folderu bez flag."""
        try:
            self._require_client().append(folder, raw_message, flags=(), msg_time=msg_time)
        except (IMAPClientError, OSError) as e:
            raise MailboxError(f"Nie można dodać wiadomości do {folder}: {e}") from e
