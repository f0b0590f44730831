"""
Hierarchia wyjątków connectora Mailchain → IMAP.
"""


class MailchainConnectorError(Exception):
    """Bazowy wyjątek connectora."""

    category = "error"


class ConnectivityError(MailchainConnectorError):
    """Serwer IMAP lub API Mailchain jest niedostępne albo odrzuciło logowanie."""

    category = "transient_connectivity"


class ProtocolViolationError(MailchainConnectorError):
    """API zwróciło odpowiedź o nieoczekiwanym kształcie."""

    category = "protocol_violation"


class StorageError(MailchainConnectorError):
    """Błąd odczytu lub zapisu rejestru dostarczonych wiadomości."""

    category = "storage_failure"


class MailboxError(MailchainConnectorError):
    """Nie udało się utworzyć, wybrać lub uzupełnić folderu IMAP."""

    category = "mailbox_failure"


class ConfigurationError(MailchainConnectorError):
    """Brakująca lub niepoprawna konfiguracja."""

    category = "configuration_invalid"


class InvalidFolderModeError(ConfigurationError):
    """Nieznany tryb układu folderów."""

    def __init__(self, folder_mode):
        super().__init__(
            f"Nieznany tryb folderów: {folder_mode!r} (dozwolone: by_address, by_network)"
        )
        self.folder_mode = folder_mode
