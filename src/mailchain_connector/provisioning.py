"""
Zakładanie brakujących folderów IMAP (rodzic przed dzieckiem).
"""
import structlog

from .routing import FolderPath

logger = structlog.get_logger(__name__)


def ensure_path(mailbox, path: FolderPath) -> str:
    """
    Upewnia się, że istnieje cała ścieżka folderów.

    Najpierw sprawdzana jest pełna ścieżka; jeśli istnieje, nic więcej się
    nie dzieje. W przeciwnym razie kolejne prefiksy są sprawdzane i
    zakładane od lewej do prawej.

    Args:
        mailbox: Sesja IMAP z metodami delimiter, folder_exists, create_folder
        path: Ścieżka docelowa

    Returns:
        Pełna nazwa folderu złączona separatorem serwera
    """
    delimiter = mailbox.delimiter
    target = path.join(delimiter)

    if mailbox.folder_exists(target):
        return target

    for prefix in path.prefixes():
        name = prefix.join(delimiter)
        if mailbox.folder_exists(name):
            continue
        logger.info("Tworzenie folderu IMAP", folder=name)
        mailbox.create_folder(name)

    return target
