"""
Wspólne fixtures dla testów connectora Mailchain → IMAP.
"""
import email
import json

import httpx
import pytest
from imapclient.exceptions import IMAPClientError

from mailchain_connector.api_client import MailchainClient
from mailchain_connector.config import FolderMode, Settings
from mailchain_connector.imap_client import IMAPMailbox

HTML_CONTENT_TYPE = r'"text/html; charset=\"UTF-8\""'
PLAIN_CONTENT_TYPE = r'"text/plain; charset=\"UTF-8\""'


# ============================================
# Atrapa serwera IMAP
# ============================================


class FakeIMAPClient:
    """Atrapa IMAPClient przechowująca foldery i wiadomości w pamięci."""

    def __init__(self, delimiter="/", folders=("Inbox",), accept_login=True, accept_plain=True):
        self.delimiter = delimiter
        self.folders = {name: [] for name in folders}
        self.accept_login = accept_login
        self.accept_plain = accept_plain
        self.logged_in = False
        self.selected = None
        self.calls = []
        self.created = []
        self.appended = []

    def __call__(self, host, port=None, ssl=None, ssl_context=None):
        """Pozwala użyć instancji jako client_factory."""
        self.calls.append(("connect", host, port, ssl))
        return self

    def login(self, username, password):
        self.calls.append(("login", username))
        if not self.accept_login:
            raise IMAPClientError("LOGIN rejected")
        self.logged_in = True

    def plain_login(self, identity, password):
        self.calls.append(("plain_login", identity))
        if not self.accept_plain:
            raise IMAPClientError("AUTHENTICATE PLAIN rejected")
        self.logged_in = True

    def logout(self):
        self.calls.append(("logout",))
        self.logged_in = False
        self.selected = None

    def _require_auth(self):
        if not self.logged_in:
            raise IMAPClientError("not authenticated")

    def list_folders(self, directory="", pattern="*"):
        self._require_auth()
        self.calls.append(("list", pattern))
        names = sorted(self.folders) if pattern == "*" else [n for n in self.folders if n == pattern]
        return [((b"\\HasNoChildren",), self.delimiter.encode(), name) for name in names]

    def create_folder(self, folder):
        self._require_auth()
        self.calls.append(("create", folder))
        if folder in self.folders:
            raise IMAPClientError(f"{folder} already exists")
        parent = folder.rpartition(self.delimiter)[0]
        if parent and parent not in self.folders:
            raise IMAPClientError(f"parent of {folder} does not exist")
        self.folders[folder] = []
        self.created.append(folder)

    def select_folder(self, folder, readonly=False):
        self._require_auth()
        self.calls.append(("select", folder))
        if folder not in self.folders:
            raise IMAPClientError(f"{folder} does not exist")
        self.selected = folder
        return {b"EXISTS": len(self.folders[folder])}

    def search(self, criteria):
        self._require_auth()
        self.calls.append(("search", tuple(criteria)))
        _, header, value = criteria
        return [
            index + 1
            for index, (raw, _flags, _time) in enumerate(self.folders[self.selected])
            if email.message_from_bytes(raw).get(header) == value
        ]

    def append(self, folder, msg, flags=(), msg_time=None):
        self._require_auth()
        self.calls.append(("append", folder))
        if folder not in self.folders:
            raise IMAPClientError(f"{folder} does not exist")
        self.folders[folder].append((msg, tuple(flags), msg_time))
        self.appended.append((folder, msg, tuple(flags), msg_time))
        return b"[APPENDUID 1 1] APPEND completed"


# ============================================
# Atrapa API Mailchain
# ============================================


def make_api_message(message_id, status="ok", content_type=PLAIN_CONTENT_TYPE, body="Hello"):
    return {
        "status": status,
        "subject": f"Subject {message_id}",
        "body": body,
        "headers": {
            "from": "<5602ea95540bee46d03ba335eed6f49d117eab95c8ab8b71bae2cdd1e564a761@ropsten.ethereum>",
            "to": "<4cb0a77b76667dac586c40cc9523ace73b5d772bd503c63ed0ca596eae1658b2@ropsten.ethereum>",
            "date": "Tue, 14 Jan 2020 10:30:00 +0000",
            "message-id": message_id,
            "content-type": content_type,
        },
        "block-id": "0x5c1",
        "block-id-encoding": "hex/0x-prefix",
        "transaction-hash": "0xabcdef",
        "transaction-hash-encoding": "hex/0x-prefix",
    }


class FakeMailchainAPI:
    """Obsługa żądań dla httpx.MockTransport."""

    def __init__(self, protocols=None, addresses=None, messages=None):
        self.protocols = protocols if protocols is not None else {"ethereum": ["ropsten"]}
        self.addresses = addresses or {}
        self.messages = messages or {}
        self.version_status = 200
        self.failing_addresses = set()
        self.failing_networks = set()
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params

        if path == "/api/version":
            return httpx.Response(self.version_status, json={"version": "0.0.38"})
        if path == "/api/protocols":
            return httpx.Response(200, json={
                "protocols": [
                    {"name": name, "networks": [{"name": network} for network in networks]}
                    for name, networks in self.protocols.items()
                ]
            })
        if path == "/api/addresses":
            key = (params["protocol"], params["network"])
            if key in self.failing_networks:
                return httpx.Response(502, text="bad gateway")
            return httpx.Response(200, json={"addresses": self.addresses.get(key, [])})
        if path == "/api/messages":
            address = params["address"]
            if address in self.failing_addresses:
                return httpx.Response(500, text="internal error")
            return httpx.Response(200, content=json.dumps({"messages": self.messages.get(address, [])}))
        return httpx.Response(404)


# ============================================
# Fixtures
# ============================================


@pytest.fixture
def settings(tmp_path):
    """Zwraca testowe ustawienia."""
    return Settings(
        imap_host="imap.example.com",
        imap_username="tim@example.com",
        imap_password="s3cr3t-Imap!",
        mailchain_folders=FolderMode.BY_ADDRESS,
        mailchain_mainnet_to_inbox=False,
        ledger_url=f"sqlite:///{tmp_path / 'ledger.sqlite3'}",
        _env_file=None,
    )


@pytest.fixture
def imap_server():
    """Zwraca atrapę serwera IMAP."""
    return FakeIMAPClient()


@pytest.fixture
def mailbox(settings, imap_server):
    """Zwraca sesję IMAP połączoną z atrapą serwera."""
    return IMAPMailbox(settings, client_factory=imap_server)


@pytest.fixture
def mailbox_factory(imap_server):
    """Fabryka sesji IMAP dla SyncEngine."""
    return lambda settings: IMAPMailbox(settings, client_factory=imap_server)


@pytest.fixture
def mailchain_api():
    """Zwraca atrapę API Mailchain."""
    return FakeMailchainAPI()


@pytest.fixture
def api_factory(mailchain_api):
    """Fabryka klientów API Mailchain korzystających z atrapy."""
    transport = httpx.MockTransport(mailchain_api)
    return lambda settings: MailchainClient(settings, transport=transport)


@pytest.fixture
def make_imap_server():
    """Zwraca klasę atrapy serwera IMAP (dla testów z innym separatorem lub logowaniem)."""
    return FakeIMAPClient


@pytest.fixture
def make_message():
    """Zwraca funkcję budującą rekord wiadomości w formacie API Mailchain."""
    return make_api_message
