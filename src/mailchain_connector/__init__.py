"""
Mailchain IMAP Connector

Connector dostarczający wiadomości Mailchain do skrzynki IMAP.
Cyklicznie pobiera wiadomości z API klienta Mailchain, zamienia je na
standardowe wiadomości e-mail i umieszcza we właściwych folderach IMAP,
pomijając wiadomości już dostarczone.
"""
from .api_client import MailchainClient, ProtocolNetwork, SourceMessage
from .config import FolderMode, Settings, get_settings
from .converter import StandardEmail, convert_message
from .delivery import DeliveryOutcome, DeliveryService
from .imap_client import IMAPMailbox, SessionState
from .ledger import DeliveryLedger
from .main import Application, main
from .models import Database, SyncRun
from .routing import FolderPath, route
from .sync_engine import SyncEngine

__version__ = "0.1.0"
__all__ = [
    "Application",
    "Database",
    "DeliveryLedger",
    "DeliveryOutcome",
    "DeliveryService",
    "FolderMode",
    "FolderPath",
    "IMAPMailbox",
    "MailchainClient",
    "ProtocolNetwork",
    "SessionState",
    "Settings",
    "SourceMessage",
    "StandardEmail",
    "SyncEngine",
    "SyncRun",
    "convert_message",
    "get_settings",
    "main",
    "route",
]
