"""
Report Archive Module
Pulls the delimited-text payload out of a zipped report artifact, fully in memory.
"""

import io
import logging
import zipfile

from mp_sync.utils.api_client import MarketplaceError

logger = logging.getLogger(__name__)


class ArchiveError(MarketplaceError):
    """Report artifact is not what the API contract promises."""
    pass


class EmptyArchiveError(ArchiveError):
    """Archive has no file entries (or is not an archive at all)."""
    pass


class NoMatchingEntryError(ArchiveError):
    """No entry with the expected extension."""
    pass


def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("cp1251")


def extract_text(blob: bytes, extension: str = ".csv") -> str:
    """
    Return the decoded text of the first entry ending with `extension`.

    Args:
        blob: Zip archive bytes
        extension: Expected file extension (case-insensitive)

    Raises:
        EmptyArchiveError: Archive has zero entries or cannot be opened
        NoMatchingEntryError: No entry has the expected extension
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(blob))
    except zipfile.BadZipFile as e:
        raise EmptyArchiveError(f"Report artifact is not a readable zip archive: {e}") from e

    with archive:
        entries = [info for info in archive.infolist() if not info.is_dir()]
        if not entries:
            raise EmptyArchiveError("Report archive is empty")

        match = next(
            (info for info in entries if info.filename.lower().endswith(extension.lower())),
            None
        )
        if match is None:
            names = ", ".join(info.filename for info in entries)
            raise NoMatchingEntryError(f"No {extension} file in report archive (entries: {names})")

        text = _decode(archive.read(match))

    logger.info(f"Extracted {match.filename} from archive ({len(text)} chars)")
    return text
