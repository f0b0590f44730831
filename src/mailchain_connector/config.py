"""
Konfiguracja connectora Mailchain → IMAP.
"""
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

MIN_INTERVAL_SECONDS = 60
LEDGER_DIR = Path.home() / ".mailchain_connector" / "imap"
LEDGER_SCHEMA_VERSION = 1


class FolderMode(str, Enum):
    """Układ folderów w skrzynce IMAP."""

    BY_NETWORK = "by_network"  # Protocol>Network>Address
    BY_ADDRESS = "by_address"  # Address>Protocol>Network


FOLDER_MODE_LABELS = {
    FolderMode.BY_NETWORK: "Protocol>Network>Address",
    FolderMode.BY_ADDRESS: "Address>Protocol>Network",
}


def default_ledger_url() -> str:
    return f"sqlite:///{LEDGER_DIR / f'ledger-v{LEDGER_SCHEMA_VERSION}.sqlite3'}"


class Settings(BaseSettings):
    """Ustawienia connectora."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Serwer IMAP
    imap_host: str = Field(..., description="Host serwera IMAP")
    imap_port: int = Field(default=993, description="Port IMAP")
    imap_ssl: bool = Field(default=True, description="Czy używać SSL")
    imap_username: str = Field(..., description="Użytkownik IMAP")
    imap_password: SecretStr = Field(..., description="Hasło IMAP")

    # Klient Mailchain
    mailchain_hostname: str = Field(default="127.0.0.1", description="Host klienta Mailchain")
    mailchain_port: int = Field(default=8080, description="Port klienta Mailchain")
    mailchain_ssl: bool = Field(default=False, description="Czy używać https")
    mailchain_timeout_seconds: float = Field(default=30.0, description="Timeout żądań HTTP")

    # Synchronizacja
    mailchain_folders: FolderMode = Field(
        default=FolderMode.BY_NETWORK,
        description="Układ folderów (by_network/by_address)",
    )
    mailchain_mainnet_to_inbox: bool = Field(
        default=False,
        description="Czy wiadomości z sieci mainnet trafiają bezpośrednio do Inbox",
    )
    mailchain_interval: int = Field(
        default=300,
        description="Interwał odpytywania w sekundach (minimum 60)",
    )

    # Rejestr dostarczonych wiadomości
    ledger_url: str = Field(
        default_factory=default_ledger_url,
        description="URL bazy rejestru dostarczonych wiadomości",
    )

    # Logowanie
    log_level: str = Field(default="INFO", description="Poziom logowania")
    log_format: str = Field(default="json", description="Format logów (json/console)")
    log_file: Optional[Path] = Field(default=None, description="Plik logów")

    @property
    def effective_interval(self) -> int:
        """Interwał odpytywania z uwzględnieniem minimum 60 sekund."""
        return max(self.mailchain_interval, MIN_INTERVAL_SECONDS)

    @property
    def mailchain_base_url(self) -> str:
        scheme = "https" if self.mailchain_ssl else "http"
        return f"{scheme}://{self.mailchain_hostname}:{self.mailchain_port}/api"


def get_settings(**overrides) -> Settings:
    """
    Zwraca instancję ustawień.

    Błędy walidacji zamieniane są na ConfigurationError z listą pól,
    które trzeba uzupełnić.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "?"
            problems.append(f"{field.upper()}: {error['msg']}")
        raise ConfigurationError(
            "Niepoprawna lub niekompletna konfiguracja. Ustaw zmienne środowiskowe "
            "lub uzupełnij plik .env:\n  " + "\n  ".join(problems)
        ) from e


def describe_settings(settings: Settings) -> str:
    """Zwraca czytelne podsumowanie ustawień (bez hasła)."""
    interval = settings.effective_interval
    interval_text = f"{interval} seconds"
    if interval > MIN_INTERVAL_SECONDS:
        interval_text += f" ({interval // 60} minutes)"
    mainnet = "To Inbox" if settings.mailchain_mainnet_to_inbox else "To Mainnet Folder"

    return (
        "IMAP Settings:\n"
        "--------------\n"
        f"Server:\t\t{settings.imap_host}\n"
        f"Port:\t\t{settings.imap_port}\n"
        f"SSL:\t\t{settings.imap_ssl}\n"
        f"Username:\t{settings.imap_username}\n"
        "\n"
        "Mailchain Settings:\n"
        "-------------------\n"
        f"http/https:\t{'https' if settings.mailchain_ssl else 'http'}\n"
        f"Hostname:\t{settings.mailchain_hostname}\n"
        f"Port:\t\t{settings.mailchain_port}\n"
        f"API URL:\t{settings.mailchain_base_url}\n"
        f"Mainnet messages: {mainnet}\n"
        f"Store messages: {FOLDER_MODE_LABELS[settings.mailchain_folders]}\n"
        f"Polling interval: {interval_text}\n"
        f"Ledger:\t\t{settings.ledger_url}"
    )
