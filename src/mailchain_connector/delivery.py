"""
Idempotentne umieszczanie wiadomości w skrzynce IMAP.
"""
from enum import Enum

import structlog

from .config import Settings
from .converter import StandardEmail
from .imap_client import IMAPMailbox
from .ledger import DeliveryLedger
from .provisioning import ensure_path
from .routing import route

logger = structlog.get_logger(__name__)


class DeliveryOutcome(str, Enum):
    """Wynik próby dostarczenia wiadomości."""

    DELIVERED = "delivered"
    ALREADY_DELIVERED = "already_delivered"  # wpis w rejestrze
    ALREADY_PRESENT = "already_present"  # Message-ID znaleziony w folderze


class DeliveryService:
    """Dostarcza wiadomości do skrzynki, co najwyżej raz na wiadomość."""

    def __init__(self, settings: Settings, ledger: DeliveryLedger, mailbox: IMAPMailbox):
        self.settings = settings
        self.ledger = ledger
        self.mailbox = mailbox

    def deliver(
        self,
        protocol: str,
        network: str,
        address: str,
        message: StandardEmail,
    ) -> DeliveryOutcome:
        """
        Umieszcza wiadomość w folderze wynikającym z (protokół, sieć, adres).

        Wpis w rejestrze powstaje dopiero po udanym APPEND (lub po znalezieniu
        wiadomości w folderze), więc przerwanie pracy pomiędzy tymi krokami
        skutkuje jedynie ponownym wyszukaniem w następnym cyklu.
        """
        if self.ledger.is_delivered(message.message_id):
            logger.debug("Wiadomość już dostarczona", message_id=message.message_id)
            return DeliveryOutcome.ALREADY_DELIVERED

        self.mailbox.ensure_connected()

        path = route(protocol, address, network, self.settings)
        folder = ensure_path(self.mailbox, path)
        self.mailbox.select_folder(folder)

        if self.mailbox.message_exists(message.message_id):
            logger.info(
                "Wiadomość już w IMAP",
                folder=folder,
                message_id=message.message_id,
            )
            outcome = DeliveryOutcome.ALREADY_PRESENT
        else:
            self.mailbox.append(folder, message.as_bytes(), msg_time=message.date)
            logger.info(
                "Wiadomość dodana do IMAP",
                folder=folder,
                message_id=message.message_id,
                subject=message.subject,
            )
            outcome = DeliveryOutcome.DELIVERED

        self.ledger.mark_delivered(message.message_id)
        return outcome
