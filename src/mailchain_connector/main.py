"""
Główny moduł connectora Mailchain → IMAP.
"""
import atexit
import logging
import signal
import sys
import time

import schedule
import structlog

from .api_client import MailchainClient
from .config import Settings, describe_settings, get_settings
from .errors import ConfigurationError
from .imap_client import IMAPMailbox
from .sync_engine import SyncEngine

logger = structlog.get_logger(__name__)

# Plik logów otwarty przez configure_logging
_log_file = None


def close_log_file() -> None:
    """Zamyka plik logów, jeśli został otwarty."""
    global _log_file
    if _log_file is not None:
        _log_file.close()
        _log_file = None


atexit.register(close_log_file)


def configure_logging(settings: Settings) -> None:
    """Konfiguruje logowanie."""
    global _log_file

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=settings.log_file is None))

    close_log_file()
    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        _log_file = settings.log_file.open("a", encoding="utf-8")
        logger_factory = structlog.WriteLoggerFactory(file=_log_file)
    else:
        logger_factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


class Application:
    """Główna aplikacja connectora."""

    def __init__(self, settings: Settings, sync_engine: SyncEngine = None):
        self.settings = settings
        self.sync_engine = sync_engine or SyncEngine(settings)
        self.scheduler = schedule.Scheduler()
        self._running = False

    @property
    def interval_seconds(self) -> int:
        """Odstęp między cyklami (minimum 60 sekund)."""
        return self.settings.effective_interval

    def sync_job(self) -> None:
        """Zadanie synchronizacji uruchamiane cyklicznie."""
        logger.info("Sprawdzanie wiadomości")

        try:
            self.sync_engine.run_tick()
        except Exception as e:
            logger.error("Błąd synchronizacji", error=str(e), exc_info=True)

        logger.info("Gotowe", next_run_in_seconds=self.interval_seconds)

    def run_once(self) -> None:
        """Uruchamia pojedynczy cykl synchronizacji."""
        logger.info("Uruchamianie jednorazowej synchronizacji")
        self.sync_engine.run_tick()

    def schedule_ticks(self) -> schedule.Job:
        """Planuje cykliczne uruchamianie synchronizacji."""
        self.scheduler.clear()
        return self.scheduler.every(self.interval_seconds).seconds.do(self.sync_job)

    def run_daemon(self) -> None:
        """Uruchamia synchronizację jako daemon."""
        logger.info(
            "Uruchamianie daemon synchronizacji",
            interval_seconds=self.interval_seconds,
        )

        self._running = True

        # Rejestracja obsługi sygnałów
        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

        # Pierwsza synchronizacja
        self.sync_job()

        # Planowanie kolejnych
        self.schedule_ticks()

        # Główna pętla
        while self._running:
            self.scheduler.run_pending()
            time.sleep(1)

        logger.info("Daemon zatrzymany")

    def stop(self) -> None:
        """Zatrzymuje daemon."""
        self._running = False

    def _handle_signal(self, signum, frame) -> None:
        """Obsługuje sygnały systemowe."""
        logger.info("Otrzymano sygnał", signal=signum)
        self.stop()

    def test_connections(self) -> dict[str, bool]:
        """Sprawdza połączenie z serwerem IMAP i API Mailchain."""
        with IMAPMailbox(self.settings) as mailbox:
            imap_ok = mailbox.test_connection()
        with MailchainClient(self.settings) as api_client:
            api_ok = api_client.test_connection()
        return {"imap": imap_ok, "mailchain_api": api_ok}

    def get_status(self) -> dict:
        """Zwraca status aplikacji."""
        sync_status = self.sync_engine.get_sync_status()

        return {
            "running": self._running,
            "interval_seconds": self.interval_seconds,
            "folder_mode": self.settings.mailchain_folders.value,
            "mainnet_to_inbox": self.settings.mailchain_mainnet_to_inbox,
            "imap_host": self.settings.imap_host,
            "mailchain_api": self.settings.mailchain_base_url,
            **sync_status,
        }


def main() -> None:
    """Punkt wejścia aplikacji."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="mailchain-connector-imap",
        description="Mailchain IMAP Connector - dostarczanie wiadomości Mailchain do skrzynki IMAP",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "-r",
        "--run",
        action="store_true",
        help="Uruchom jako daemon i synchronizuj wiadomości (domyślne)",
    )
    mode.add_argument(
        "--once",
        action="store_true",
        help="Uruchom jednorazową synchronizację i zakończ",
    )
    mode.add_argument(
        "--status",
        action="store_true",
        help="Wyświetl status synchronizacji",
    )
    mode.add_argument(
        "-t",
        "--test-connection",
        action="store_true",
        help="Sprawdź połączenie z serwerem IMAP i API Mailchain",
    )
    mode.add_argument(
        "-p",
        "--print-config",
        action="store_true",
        help="Wyświetl ustawienia connectora",
    )

    args = parser.parse_args()

    try:
        settings = get_settings()
    except ConfigurationError as e:
        print(f"{e}\n\nUruchom `mailchain-connector-imap --help`, aby zobaczyć opcje.", file=sys.stderr)
        sys.exit(2)

    configure_logging(settings)

    if args.print_config:
        print(describe_settings(settings))
        return

    try:
        app = Application(settings)

        if args.status:
            status = app.get_status()
            print("\n=== Status Mailchain IMAP Connector ===")
            for key, value in status.items():
                print(f"{key}: {value}")
            print()

        elif args.test_connection:
            results = app.test_connections()
            print(f"IMAP: {'OK' if results['imap'] else 'BŁĄD'}")
            print(f"Mailchain API: {'OK' if results['mailchain_api'] else 'BŁĄD'}")
            if not all(results.values()):
                sys.exit(1)

        elif args.once:
            app.run_once()

        else:
            # Domyślnie daemon
            app.run_daemon()

    except KeyboardInterrupt:
        logger.info("Przerwano przez użytkownika")
        sys.exit(0)

    except ConfigurationError as e:
        logger.error("Niepoprawna konfiguracja", error=str(e))
        sys.exit(2)

    except Exception as e:
        logger.error("Błąd krytyczny", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
