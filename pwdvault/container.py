"""
On-disk container layout and atomic file replacement.

Layout (little-endian version):

    [magic:4][version:2][salt:16][nonce:12][ciphertext:N][tag:16]

The first 34 bytes form the header. Magic, version and salt are passed to
AES-GCM as associated data; the nonce is authenticated as the GCM IV.
"""

import os
import stat
import struct
import logging
import platform
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from . import config
from .exceptions import FormatError, PersistenceError

logger = logging.getLogger(__name__)

_PREFIX = struct.Struct('<4sH')
HEADER_SIZE = _PREFIX.size + config.SALT_SIZE + config.NONCE_SIZE
MIN_CONTAINER_SIZE = HEADER_SIZE + config.TAG_SIZE

PathLike = Union[str, os.PathLike]


@dataclass(frozen=True)
class Container:
    """A parsed container file."""
    salt: bytes
    nonce: bytes
    ciphertext: bytes
    tag: bytes
    version: int = config.CONTAINER_VERSION

    @staticmethod
    def associated_data_for(salt: bytes, version: int = config.CONTAINER_VERSION) -> bytes:
        """Magic, version and salt; authenticated by the GCM tag."""
        return _PREFIX.pack(config.CONTAINER_MAGIC, version) + salt

    @property
    def associated_data(self) -> bytes:
        return self.associated_data_for(self.salt, self.version)

    @property
    def header(self) -> bytes:
        return self.associated_data + self.nonce

    def to_bytes(self) -> bytes:
        return self.header + self.ciphertext + self.tag

    @classmethod
    def from_bytes(cls, data: bytes) -> 'Container':
        """
        Parse container bytes.

        Raises:
            FormatError: Bad magic, unsupported version or truncated file.
        """
        if len(data) < _PREFIX.size:
            raise FormatError("Container is truncated")
        magic, version = _PREFIX.unpack_from(data)
        if magic != config.CONTAINER_MAGIC:
            raise FormatError(f"Not a vault container (magic {magic!r})")
        if version != config.CONTAINER_VERSION:
            raise FormatError(f"Unsupported container version: {version}")
        if len(data) < MIN_CONTAINER_SIZE:
            raise FormatError("Container is truncated")

        offset = _PREFIX.size
        salt = data[offset:offset + config.SALT_SIZE]
        offset += config.SALT_SIZE
        nonce = data[offset:offset + config.NONCE_SIZE]
        offset += config.NONCE_SIZE
        return cls(
            salt=bytes(salt),
            nonce=bytes(nonce),
            ciphertext=bytes(data[offset:-config.TAG_SIZE]),
            tag=bytes(data[-config.TAG_SIZE:]),
            version=version,
        )


def read_container(path: PathLike) -> Container:
    """Read and parse a container file. I/O errors become PersistenceError."""
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except OSError as e:
        logger.error(f"Cannot read vault container {path}: {e}")
        raise PersistenceError(f"Cannot read vault container {path}: {e}") from e
    return Container.from_bytes(data)


def write_atomic(path: PathLike, data: bytes) -> None:
    """
    Replace ``path`` with ``data`` so readers see either the old or the new file.

    The data goes to a temporary file in the same directory, is flushed and
    fsynced, then renamed over the target. On failure the temporary file is
    removed and the previous file is left untouched.

    Raises:
        PersistenceError: If any filesystem step fails.
    """
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        set_owner_only_permissions(tmp_name)
        os.replace(tmp_name, path)
        tmp_name = None
        _fsync_directory(path.parent)
    except OSError as e:
        logger.error(f"Error saving vault file {path}: {e}", exc_info=True)
        raise PersistenceError(f"Cannot write vault container {path}: {e}") from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            try:
                os.remove(tmp_name)
            except OSError as e:
                logger.warning(f"Could not remove temporary file {tmp_name}: {e}")


def set_owner_only_permissions(filepath: PathLike) -> None:
    """Set file to be readable/writable by owner only."""
    if platform.system() == 'Windows':
        # chmod on Windows only toggles the read-only bit; ACLs are left alone.
        return
    os.chmod(filepath, stat.S_IRUSR | stat.S_IWUSR)  # 600


def _fsync_directory(directory: Path) -> None:
    # The rename already happened; a failure here only weakens durability.
    if platform.system() == 'Windows':
        return
    try:
        fd = os.open(directory, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError as e:
        logger.warning(f"Could not fsync directory {directory}: {e}")
