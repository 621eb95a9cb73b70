"""Tarball entry extraction for .tgz package archives.

Corrupt archives, truncated streams and missing entries all come back as
None. Callers map that to a NotFoundError naming the entry they wanted.
"""

import io
import logging
import tarfile
import zlib
from typing import Optional

logger = logging.getLogger(__name__)


def extract_bytes(archive: bytes, entry_path: str) -> Optional[bytes]:
    """Return the raw content of the first entry whose path equals entry_path."""
    try:
        with tarfile.open(fileobj=io.BytesIO(archive), mode="r:gz") as tar:
            for member in tar:
                if member.name != entry_path:
                    continue
                if not member.isfile():
                    return None
                fileobj = tar.extractfile(member)
                if fileobj is None:
                    return None
                return fileobj.read()
    except (tarfile.TarError, zlib.error, EOFError, OSError) as e:
        logger.debug(f"Cannot read {entry_path} from archive: {e}")
    return None


def extract_text(archive: bytes, entry_path: str) -> Optional[str]:
    """Return the UTF-8 content of entry_path, or None if absent or not valid UTF-8."""
    data = extract_bytes(archive, entry_path)
    if data is None:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug(f"{entry_path} is not valid UTF-8")
        return None
