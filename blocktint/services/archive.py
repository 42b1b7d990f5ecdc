"""
blocktint Archive Access
Exposes the named entries of a texture pack with their checksums.

A pack is either a .zip file, whose directory already carries a CRC-32 per
member, or a plain directory of images whose CRCs are computed on open.
"""
import os
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Union

from blocktint.config import config
from blocktint.services.fingerprint import compute_file_crc32


class ArchiveOpenError(RuntimeError):
    """Raised when an archive cannot be opened at all."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Could not open texture archive {self.path}: {reason}")


class EntryReadError(OSError):
    """Raised when a single archive member cannot be read back."""
    pass


@dataclass(frozen=True)
class ArchiveEntry:
    """One member of a texture archive."""
    name: str
    checksum: int
    read: Callable[[], bytes]


class TextureArchive:
    """Open texture archive; use as a context manager."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._zip: Optional[zipfile.ZipFile] = None
        self.entries: List[ArchiveEntry] = []
        self._open()

    def _open(self):
        if self.path.is_dir():
            self.entries = self._scan_directory()
            return

        try:
            self._zip = zipfile.ZipFile(self.path)
        except FileNotFoundError:
            raise ArchiveOpenError(self.path, "file not found")
        except zipfile.BadZipFile as e:
            raise ArchiveOpenError(self.path, f"not a zip file ({e})")
        except OSError as e:
            raise ArchiveOpenError(self.path, str(e))

        self.entries = [
            ArchiveEntry(info.filename, info.CRC & 0xFFFFFFFF, self._zip_reader(info))
            for info in self._zip.infolist()
            if not info.is_dir()
        ]

    def _zip_reader(self, info: zipfile.ZipInfo) -> Callable[[], bytes]:
        def read() -> bytes:
            if self._zip is None:
                raise EntryReadError(f"Archive {self.path} is closed")
            try:
                return self._zip.read(info)
            except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as e:
                # RuntimeError: encrypted member, no password
                raise EntryReadError(f"Failed to read {info.filename}: {e}") from e
        return read

    def _scan_directory(self) -> List[ArchiveEntry]:
        entries = []
        try:
            names = sorted(os.listdir(self.path))
        except OSError as e:
            raise ArchiveOpenError(self.path, str(e))

        for name in names:
            file_path = self.path / name
            if not file_path.is_file() or file_path.suffix.lower() not in config.SUPPORTED_EXTENSIONS:
                continue
            try:
                checksum = compute_file_crc32(file_path)
            except OSError as e:
                raise ArchiveOpenError(self.path, f"cannot read {name} ({e})")
            entries.append(ArchiveEntry(name, checksum, _file_reader(file_path)))
        return entries

    def close(self):
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    def __enter__(self) -> "TextureArchive":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __len__(self) -> int:
        return len(self.entries)


def _file_reader(file_path: Path) -> Callable[[], bytes]:
    def read() -> bytes:
        try:
            return file_path.read_bytes()
        except OSError as e:
            raise EntryReadError(f"Failed to read {file_path}: {e}") from e
    return read


def open_archive(path: Union[str, Path]) -> TextureArchive:
    """
    Open a texture archive.

    Args:
        path: Path to a .zip file or a directory of images

    Returns:
        TextureArchive whose ``entries`` list every member

    Raises:
        ArchiveOpenError: If the path is missing or is not a readable archive
    """
    return TextureArchive(path)
