"""
Wyznaczanie folderu IMAP dla wiadomości na podstawie (protokół, sieć, adres).
"""
from dataclasses import dataclass
from typing import Iterator

from .config import FolderMode
from .errors import InvalidFolderModeError

INBOX = "Inbox"
MAINNET = "mainnet"
SEGMENT_DELIMITER_REPLACEMENT = "_"

# Protokoły, których adresy wyświetlane są z prefiksem
ADDRESS_PREFIXES = {
    "ethereum": "0x",
}


@dataclass(frozen=True)
class FolderPath:
    """Uporządkowana ścieżka folderu złożona z segmentów."""

    segments: tuple[str, ...]

    def __post_init__(self):
        if not self.segments or any(not segment for segment in self.segments):
            raise ValueError(f"Niepoprawna ścieżka folderu: {self.segments!r}")

    def __len__(self) -> int:
        return len(self.segments)

    def join(self, delimiter: str) -> str:
        """Łączy segmenty separatorem serwera.

        Separator występujący wewnątrz segmentu zastępowany jest znakiem "_",
        aby jeden segment zawsze odpowiadał jednemu poziomowi folderów.
        """
        return delimiter.join(
            segment.replace(delimiter, SEGMENT_DELIMITER_REPLACEMENT)
            for segment in self.segments
        )

    def prefixes(self) -> Iterator["FolderPath"]:
        """Zwraca kolejne prefiksy ścieżki, od korzenia do pełnej ścieżki."""
        for end in range(1, len(self.segments) + 1):
            yield FolderPath(self.segments[:end])


def normalize_address(protocol: str, address: str) -> str:
    """Dodaje prefiks adresu wymagany przez dany protokół (np. 0x dla ethereum)."""
    prefix = ADDRESS_PREFIXES.get(protocol.lower())
    if prefix and not address.lower().startswith(prefix):
        return f"{prefix}{address}"
    return address


def route(protocol: str, address: str, network: str, config) -> FolderPath:
    """
    Wyznacza folder docelowy wiadomości.

    Args:
        protocol: Protokół (np. "ethereum")
        address: Adres odbiorcy
        network: Sieć (np. "ropsten", "mainnet")
        config: Obiekt z atrybutami mailchain_folders i mailchain_mainnet_to_inbox

    Returns:
        FolderPath
    """
    address = normalize_address(protocol, address)

    if config.mailchain_mainnet_to_inbox and network.lower() == MAINNET:
        return FolderPath((INBOX,))

    folder_mode = config.mailchain_folders
    if folder_mode == FolderMode.BY_ADDRESS:
        return FolderPath((INBOX, address, protocol, network))
    if folder_mode == FolderMode.BY_NETWORK:
        return FolderPath((INBOX, protocol, network, address))

    raise InvalidFolderModeError(folder_mode)
