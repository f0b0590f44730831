"""
Klient REST API klienta Mailchain.
"""
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog

from .config import Settings
from .errors import ConnectivityError, ProtocolViolationError
from .routing import normalize_address

logger = structlog.get_logger(__name__)

STATUS_OK = "ok"


@dataclass(frozen=True)
class ProtocolNetwork:
    """Para protokół/sieć obsługiwana przez klienta Mailchain."""

    protocol: str
    network: str


@dataclass
class SourceMessage:
    """Wiadomość z API Mailchain."""

    status: str
    subject: str
    body: str
    sender: Optional[str]
    recipient: Optional[str]
    date: Optional[str]
    message_id: Optional[str]
    content_type: Optional[str]
    block_id: Optional[str]
    block_id_encoding: Optional[str]
    transaction_hash: Optional[str]
    transaction_hash_encoding: Optional[str]

    @property
    def is_ok(self) -> bool:
        """Czy wiadomość została poprawnie odczytana przez klienta Mailchain."""
        return self.status == STATUS_OK


class MailchainClient:
    """Klient synchroniczny API Mailchain."""

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def __enter__(self):
        self._client = httpx.Client(
            base_url=self.settings.mailchain_base_url,
            timeout=self.settings.mailchain_timeout_seconds,
            transport=self._transport,
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._client:
            self._client.close()
            self._client = None

    def _request(self, endpoint: str, params: Optional[dict[str, str]] = None) -> dict[str, Any]:
        """Wykonuje żądanie GET i zwraca zdekodowany JSON."""
        if self._client is None:
            raise RuntimeError("MailchainClient musi być użyty jako context manager")

        try:
            response = self._client.get(
                endpoint,
                params=params,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Błąd API Mailchain", endpoint=endpoint, error=str(e))
            raise ConnectivityError(f"API Mailchain niedostępne ({endpoint}): {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolViolationError(f"Odpowiedź {endpoint} nie jest poprawnym JSON") from e

        if not isinstance(data, dict):
            raise ProtocolViolationError(f"Odpowiedź {endpoint} nie jest obiektem JSON")
        return data

    def get_version(self) -> str:
        """Zwraca wersję API (używane do testu połączenia)."""
        data = self._request("/version")
        return str(data.get("version", ""))

    def test_connection(self) -> bool:
        """Sprawdza dostępność API Mailchain."""
        try:
            version = self.get_version()
        except (ConnectivityError, ProtocolViolationError) as e:
            logger.warning("API Mailchain niedostępne", error=str(e))
            return False

        logger.debug("API Mailchain dostępne", version=version)
        return True

    def get_protocol_networks(self) -> list[ProtocolNetwork]:
        """Zwraca listę par protokół/sieć."""
        data = self._request("/protocols")
        try:
            return [
                ProtocolNetwork(protocol=proto["name"], network=network["name"])
                for proto in data["protocols"]
                for network in proto["networks"]
            ]
        except (KeyError, TypeError) as e:
            raise ProtocolViolationError(f"Niepoprawna odpowiedź /protocols: {e!r}") from e

    def get_addresses(self, protocol: str, network: str) -> list[str]:
        """Zwraca adresy skonfigurowane dla protokołu i sieci."""
        data = self._request("/addresses", params={"protocol": protocol, "network": network})
        addresses = data.get("addresses")
        if addresses is None:
            return []
        if not isinstance(addresses, list):
            raise ProtocolViolationError("Pole 'addresses' nie jest listą")
        return [str(address) for address in addresses]

    def get_messages(self, address: str, protocol: str, network: str) -> list[SourceMessage]:
        """Pobiera wiadomości dla adresu."""
        params = {
            "address": normalize_address(protocol, address),
            "protocol": protocol,
            "network": network,
        }
        data = self._request("/messages", params=params)

        items = data.get("messages")
        if items is None:
            return []
        if not isinstance(items, list):
            raise ProtocolViolationError("Pole 'messages' nie jest listą")

        messages = [self._parse_message(item) for item in items]
        logger.debug(
            "Pobrano wiadomości z Mailchain",
            count=len(messages),
            protocol=protocol,
            network=network,
            address=address,
        )
        return messages

    def _parse_message(self, data: dict[str, Any]) -> SourceMessage:
        """Parsuje dane wiadomości z API."""
        if not isinstance(data, dict):
            raise ProtocolViolationError("Wiadomość nie jest obiektem JSON")

        headers = data.get("headers") or {}
        if not isinstance(headers, dict):
            raise ProtocolViolationError("Pole 'headers' nie jest obiektem JSON")

        return SourceMessage(
            status=data.get("status", ""),
            subject=data.get("subject") or "",
            body=data.get("body") or "",
            sender=headers.get("from"),
            recipient=headers.get("to"),
            date=headers.get("date"),
            message_id=headers.get("message-id"),
            content_type=headers.get("content-type"),
            block_id=data.get("block-id"),
            block_id_encoding=data.get("block-id-encoding"),
            transaction_hash=data.get("transaction-hash"),
            transaction_hash_encoding=data.get("transaction-hash-encoding"),
        )
