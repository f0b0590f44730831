"""
Silnik synchronizacji Mailchain → IMAP (jeden cykl odpytywania).
"""
import structlog

from .api_client import MailchainClient, ProtocolNetwork, SourceMessage
from .config import Settings
from .converter import convert_message
from .delivery import DeliveryOutcome, DeliveryService
from .errors import ProtocolViolationError
from .imap_client import IMAPMailbox
from .ledger import DeliveryLedger
from .models import Database, SyncRun

logger = structlog.get_logger(__name__)


class SyncEngine:
    """Silnik synchronizacji Mailchain → IMAP."""

    def __init__(
        self,
        settings: Settings,
        api_factory=MailchainClient,
        mailbox_factory=IMAPMailbox,
    ):
        self.settings = settings
        self.db = Database(settings.ledger_url)
        self.db.create_tables()
        self.ledger = DeliveryLedger(self.db)
        self._api_factory = api_factory
        self._mailbox_factory = mailbox_factory

    def run_tick(self) -> SyncRun:
        """
        Wykonuje pojedynczy cykl synchronizacji.

        Błędy pojedynczej pary protokół/sieć, adresu lub wiadomości są
        logowane i liczone, ale nie przerywają pozostałej pracy.

        Zwraca obiekt SyncRun z wynikami.
        """
        session = self.db.get_session()
        run = self.db.start_sync_run(session)
        run.messages_delivered = run.messages_skipped = run.messages_failed = 0

        logger.info("Rozpoczęcie synchronizacji", run_id=run.id)

        try:
            with (
                self._api_factory(self.settings) as api_client,
                self._mailbox_factory(self.settings) as mailbox,
            ):
                if not api_client.test_connection() or not mailbox.test_connection():
                    logger.warning("Pominięto cykl: IMAP lub API Mailchain niedostępne", run_id=run.id)
                    self.db.finish_sync_run(
                        session, run, status="skipped", error_message="services unreachable"
                    )
                    return run

                delivery = DeliveryService(self.settings, self.ledger, mailbox)
                for pair in api_client.get_protocol_networks():
                    self._sync_network(api_client, delivery, pair, run)

            self.db.finish_sync_run(session, run, status="completed")
            logger.info(
                "Synchronizacja zakończona",
                run_id=run.id,
                delivered=run.messages_delivered,
                skipped=run.messages_skipped,
                failed=run.messages_failed,
                duration=run.duration_seconds,
            )

        except Exception as e:
            logger.error("Błąd synchronizacji", error=str(e), run_id=run.id)
            self.db.finish_sync_run(session, run, status="failed", error_message=str(e))
            raise

        finally:
            session.close()

        return run

    def _sync_network(
        self,
        api_client: MailchainClient,
        delivery: DeliveryService,
        pair: ProtocolNetwork,
        run: SyncRun,
    ) -> None:
        """Synchronizuje wszystkie adresy jednej pary protokół/sieć."""
        try:
            addresses = api_client.get_addresses(pair.protocol, pair.network)
        except Exception as e:
            logger.error(
                "Błąd pobierania adresów",
                protocol=pair.protocol,
                network=pair.network,
                category=getattr(e, "category", "unexpected"),
                error=str(e),
            )
            return

        for address in addresses:
            self._sync_address(api_client, delivery, pair, address, run)

    def _sync_address(
        self,
        api_client: MailchainClient,
        delivery: DeliveryService,
        pair: ProtocolNetwork,
        address: str,
        run: SyncRun,
    ) -> None:
        """Pobiera i dostarcza wiadomości jednego adresu."""
        context = {"protocol": pair.protocol, "network": pair.network, "address": address}

        try:
            messages = api_client.get_messages(address, pair.protocol, pair.network)
        except Exception as e:
            logger.error(
                "Błąd pobierania wiadomości",
                category=getattr(e, "category", "unexpected"),
                error=str(e),
                **context,
            )
            return

        for record in messages:
            if not record.is_ok:
                logger.debug("Pominięto wiadomość o statusie innym niż ok", status=record.status, **context)
                run.messages_skipped += 1
                continue

            try:
                outcome = self._deliver_record(delivery, pair, address, record)
            except Exception as e:
                logger.error(
                    "Błąd dostarczania wiadomości",
                    message_id=record.message_id,
                    category=getattr(e, "category", "unexpected"),
                    error=str(e),
                    **context,
                )
                run.messages_failed += 1
                continue

            if outcome == DeliveryOutcome.DELIVERED:
                run.messages_delivered += 1
            else:
                run.messages_skipped += 1

    def _deliver_record(
        self,
        delivery: DeliveryService,
        pair: ProtocolNetwork,
        address: str,
        record: SourceMessage,
    ) -> DeliveryOutcome:
        if not record.message_id:
            raise ProtocolViolationError("Wiadomość bez nagłówka message-id")

        message = convert_message(record)
        return delivery.deliver(pair.protocol, pair.network, address, message)

    def get_sync_status(self) -> dict:
        """Zwraca status synchronizacji."""
        session = self.db.get_session()

        try:
            last_run = self.db.get_last_sync_run(session)

            if last_run:
                return {
                    "last_sync": last_run.started_at.isoformat(),
                    "status": last_run.status,
                    "delivered": last_run.messages_delivered,
                    "skipped": last_run.messages_skipped,
                    "failed": last_run.messages_failed,
                    "duration_seconds": last_run.duration_seconds,
                    "ledger_entries": self.ledger.count(),
                }
            else:
                return {
                    "last_sync": None,
                    "status": "never",
                    "delivered": 0,
                    "skipped": 0,
                    "failed": 0,
                    "ledger_entries": self.ledger.count(),
                }

        finally:
            session.close()
