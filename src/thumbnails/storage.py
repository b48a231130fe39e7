"""Blob storage backed by a local directory.

Each container is a sub-directory of the storage root and blob names map to
relative paths inside it, so

    https://account.blob.core.windows.net/images/2024/photo.jpg

is read from ``<root>/images/2024/photo.jpg``. Emulator URLs carry the
account name in the path (``http://127.0.0.1:10000/devstoreaccount1/images/photo.jpg``)
and are handled the same way.
"""
import ipaddress
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Tuple
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)


def _is_path_style(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        return False


def split_blob_url(url: str) -> Tuple[str, str]:
    """Return (container, blob name) for a blob URL."""
    parsed = urlparse(url.strip())
    segments: List[str] = [unquote(s) for s in parsed.path.split("/") if s]
    if parsed.hostname and _is_path_style(parsed.hostname) and segments:
        segments = segments[1:]
    if len(segments) < 2:
        raise ValueError(f"Not a blob URL (no container/name): {url}")
    if any(s in (".", "..") for s in segments):
        raise ValueError(f"Relative segments are not allowed in blob URLs: {url}")
    return segments[0], "/".join(segments[1:])


def blob_name_from_url(url: str) -> str:
    return split_blob_url(url)[1]


class LocalBlobStore:
    """Reads and writes blobs under a root directory."""

    def __init__(self, root: Path = Path("data/blobs")):
        self.root = root

    def path_for(self, container: str, name: str) -> Path:
        return self.root / container / Path(*name.split("/"))

    def read(self, container: str, name: str) -> bytes:
        path = self.path_for(container, name)
        logger.debug(f"Reading blob {path}")
        return path.read_bytes()

    def read_url(self, url: str) -> bytes:
        container, name = split_blob_url(url)
        return self.read(container, name)

    def write(self, container: str, name: str, data: bytes) -> Path:
        """Write (or overwrite) a blob. The file is replaced atomically."""
        path = self.path_for(container, name)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Wrote {len(data)} bytes to {path}")
        return path

    def exists(self, container: str, name: str) -> bool:
        return self.path_for(container, name).is_file()
