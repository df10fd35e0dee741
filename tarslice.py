# -*- coding: utf-8 -*-
"""
tarslice.py

This module reads single files, or whole directories, out of (compressed) tar
archives without unpacking them to disk.

Access is strictly sequential. The layers are:
1.  ArchiveHandle: the archive file plus the decompression transform selected
    from its extension (see CODECS), read as one raw tar byte stream.
2.  EntryScanner: walks that stream entry by entry using tarfile's
    forward-only stream mode.
3.  find_entry / read_file_from_tar / read_file_from_archive: linear search for
    one entry, returning its whole body.
4.  DirReader: presents every entry directly inside a directory as one
    continuous readable stream, e.g. data/part1, data/part2, ... read as "data".

Supported archive extensions:
    .tar    uncompressed
    .gz     gzip
    .bz2    bzip2
    .xz     xz / lzma
    .zst    zstandard

Requires:
    - Python 3.8+
    - zstandard (`pip install zstandard`)
"""

import bz2
import enum
import gzip
import io
import lzma
import os
import posixpath
import tarfile
import zlib
from typing import BinaryIO, Callable, Dict, Iterator, Optional

import zstandard as zstd

# --- Constants ---
CHUNK_SIZE = 64 * 1024  # 64KB for streaming copies

# Largest possible zstd frame header (magic + descriptor + window + dict id + content size)
ZSTD_FRAME_HEADER_MAX = 18

# Errors a codec or the tar reader may raise while decoding a stream
SCAN_ERRORS = (tarfile.TarError, EOFError, OSError, lzma.LZMAError, zstd.ZstdError, zlib.error)
CODEC_ERRORS = (EOFError, OSError, ValueError, lzma.LZMAError, zstd.ZstdError, zlib.error)


# --- Custom Exceptions ---
class TarSliceError(Exception):
    """Base class for exceptions in this module."""

    pass


class ResourceOpenError(TarSliceError):
    """Raised when the archive file itself cannot be opened."""

    pass


class UnsupportedFormatError(TarSliceError, ValueError):
    """Raised when the archive extension is not one of SUPPORTED_FORMATS."""

    pass


class CodecConstructionError(TarSliceError):
    """Raised when the decompression transform rejects the stream header."""

    pass


class ContainerScanError(TarSliceError):
    """Raised when tar entry metadata or data is malformed or truncated."""

    pass


class FileNotFoundInArchiveError(TarSliceError, KeyError):
    """Raised when a scan reaches the end of the archive without finding the requested name."""

    def __init__(self, name: str, message: Optional[str] = None):
        super().__init__(message or f'"{name}" not found in archive')
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class CloseError(TarSliceError):
    """Raised when releasing the codec or the archive file fails."""

    pass


# --- Codec Constructors ---
def _open_gzip(fileobj: BinaryIO) -> BinaryIO:
    codec = gzip.GzipFile(fileobj=fileobj, mode="rb")
    codec.peek(1)  # parses the member header
    return codec


def _open_bz2(fileobj: BinaryIO) -> BinaryIO:
    codec = bz2.BZ2File(fileobj, mode="rb")
    codec.peek(1)
    return codec


def _open_xz(fileobj: BinaryIO) -> BinaryIO:
    codec = lzma.LZMAFile(fileobj, mode="rb", format=lzma.FORMAT_AUTO)
    codec.peek(1)
    return codec


def _open_zstd(fileobj: BinaryIO) -> BinaryIO:
    header = fileobj.read(ZSTD_FRAME_HEADER_MAX)
    zstd.get_frame_parameters(header)
    fileobj.seek(0)
    return zstd.ZstdDecompressor().stream_reader(fileobj, read_across_frames=True, closefd=False)


# Extension -> codec constructor. None means the archive is read as-is.
CODECS: Dict[str, Optional[Callable[[BinaryIO], BinaryIO]]] = {
    ".tar": None,
    ".gz": _open_gzip,
    ".bz2": _open_bz2,
    ".xz": _open_xz,
    ".zst": _open_zstd,
}
SUPPORTED_FORMATS = tuple(sorted(CODECS))


# --- Archive Handle ---
class ArchiveHandle:
    """
    A readable, closable tar byte stream decoded from an archive file.

    Owns two resources: the base file object and, for compressed archives, the
    codec stream reading from it. close() always releases the codec before the
    base file, and releases the base file even if closing the codec failed.
    """

    def __init__(self, fileobj: BinaryIO, codec: Optional[BinaryIO] = None, name: Optional[str] = None):
        self.fileobj = fileobj
        self.codec = codec
        self.name = name if name is not None else getattr(fileobj, "name", "<stream>")
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        """Reads decoded tar bytes."""
        if self.closed:
            raise ValueError(f'Read from closed archive "{self.name}".')
        if self.codec is not None:
            return self.codec.read(size)
        return self.fileobj.read(size)

    def readable(self) -> bool:
        return not self.closed

    def close(self):
        """Releases the codec (if any), then the base file. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True

        codec_error = None
        try:
            if self.codec is not None:
                try:
                    self.codec.close()
                except CODEC_ERRORS as e:
                    codec_error = e
        finally:
            try:
                self.fileobj.close()
            except OSError as e:
                raise CloseError(f'Failed to close archive "{self.name}": {e}') from (codec_error or e)

        if codec_error is not None:
            raise CloseError(f'Failed to close decompressor for "{self.name}": {codec_error}') from codec_error

    def __enter__(self) -> "ArchiveHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"<ArchiveHandle {self.name!r} codec={type(self.codec).__name__ if self.codec is not None else None} closed={self.closed}>"


def open_archive(path: str) -> ArchiveHandle:
    """
    Opens an archive and wraps it in the decompression transform matching its extension.

    Only the last extension counts: "backup.tar.gz" is read as gzip. A bare
    dot-file such as ".gz" has no extension (os.path.splitext) and is
    unsupported. The caller owns the returned handle and must close it.

    Raises:
        UnsupportedFormatError: the extension is not in CODECS. Nothing is opened.
        ResourceOpenError: the file could not be opened.
        CodecConstructionError: the codec rejected the stream header. The file is closed again.
    """
    ext = os.path.splitext(path)[1]
    if ext not in CODECS:
        raise UnsupportedFormatError(f'Unsupported archive format "{ext or path}" (supported: {", ".join(SUPPORTED_FORMATS)}).')
    open_codec = CODECS[ext]

    try:
        fileobj = open(path, "rb")
    except OSError as e:
        raise ResourceOpenError(f'Failed to open archive "{path}": {e}') from e

    if open_codec is None:
        return ArchiveHandle(fileobj, None, path)

    try:
        codec = open_codec(fileobj)
    except CODEC_ERRORS as e:
        fileobj.close()
        raise CodecConstructionError(f'Failed to read "{ext}" stream header of "{path}": {e}') from e

    return ArchiveHandle(fileobj, codec, path)


# --- Entry Scanner ---
class StrictTarInfo(tarfile.TarInfo):
    """
    TarInfo that refuses damaged headers anywhere in the archive.

    tarfile only reports a bad or short header at offset 0; further in it ends
    the archive quietly. Zero blocks (the end-of-archive marker) and a clean
    end of data still end the archive.
    """

    __slots__ = ()

    @classmethod
    def fromtarfile(cls, tf):
        try:
            return super().fromtarfile(tf)
        except (tarfile.InvalidHeaderError, tarfile.TruncatedHeaderError) as e:
            raise ContainerScanError(f"Malformed tar header at offset {tf.offset}: {e}") from e


class ContainerEntry:
    """One tar record. The body is readable only until the scanner moves past it."""

    def __init__(self, info: tarfile.TarInfo, body: Optional[BinaryIO] = None):
        self.info = info
        self.name: str = info.name
        self.size: int = info.size
        self._body = body

    def is_dir(self) -> bool:
        return self.info.isdir()

    def is_file(self) -> bool:
        return self.info.isreg()

    def read(self, size: int = -1) -> bytes:
        if self._body is None:
            return b""
        try:
            return self._body.read(size)
        except SCAN_ERRORS as e:
            raise ContainerScanError(f'Failed to read data of "{self.name}": {e}') from e

    def readinto(self, b) -> int:
        if self._body is None:
            return 0
        try:
            return self._body.readinto(b)
        except SCAN_ERRORS as e:
            raise ContainerScanError(f'Failed to read data of "{self.name}": {e}') from e

    def __repr__(self) -> str:
        return f"<ContainerEntry {self.name!r} size={self.size}>"


class EntryScanner:
    """Forward-only iteration over the entries of a decoded tar stream."""

    def __init__(self, stream: BinaryIO):
        try:
            self._tar = tarfile.open(fileobj=stream, mode="r|", tarinfo=StrictTarInfo)
        except SCAN_ERRORS as e:
            raise ContainerScanError(f"Not a readable tar stream: {e}") from e
        self.entries_seen = 0
        self.exhausted = False

    def advance(self) -> Optional[ContainerEntry]:
        """Moves to the next entry, skipping whatever is left of the current one. None at end of archive."""
        if self.exhausted:
            return None
        try:
            info = self._tar.next()
        except SCAN_ERRORS as e:
            raise ContainerScanError(f"Malformed tar entry after {self.entries_seen} entries: {e}") from e

        if info is None:
            self.exhausted = True
            return None

        self.entries_seen += 1
        body = self._tar.extractfile(info) if info.isreg() else None
        return ContainerEntry(info, body)

    def __iter__(self) -> Iterator[ContainerEntry]:
        while True:
            entry = self.advance()
            if entry is None:
                return
            yield entry

    def close(self):
        """Releases the tar reader. The underlying stream stays open."""
        self._tar.close()

    def __enter__(self) -> "EntryScanner":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# --- Single-File Extraction ---
def find_entry(scanner: EntryScanner, name: str) -> bytes:
    """Scans forward for the entry called exactly `name` and returns its whole body."""
    for entry in scanner:
        if entry.name == name:
            return entry.read()
    raise FileNotFoundInArchiveError(name)


def read_file_from_tar(stream: BinaryIO, name: str) -> bytes:
    """Reads one file from an already decoded tar stream."""
    with EntryScanner(stream) as scanner:
        return find_entry(scanner, name)


def read_file_from_archive(path: str, name: str) -> bytes:
    """Reads one file from a (compressed) archive on disk."""
    with open_archive(path) as archive:
        return read_file_from_tar(archive, name)


# --- Directory Reader ---
class ReaderState(enum.Enum):
    """States of a DirReader."""

    READY = "ready"
    EXHAUSTED = "exhausted"
    ERRORED = "errored"


def parent_dir(name: str) -> str:
    """Normalized parent directory of an entry name ("." for top-level entries)."""
    return posixpath.normpath(posixpath.dirname(name))


class DirReader(io.RawIOBase):
    """
    Reads every file directly inside a tar directory as if they were one.

    The reader is opened on the directory's own entry and consumes the entries
    that follow it, in archive order, for as long as their parent directory is
    that directory. The first entry living anywhere else ends the stream.

    Nested directories are not descended into: the first entry inside a
    subdirectory has a different parent and so ends the stream early.

    Scan errors are raised once and leave the reader exhausted. An error hit by
    the initial advance in the constructor is held back and raised by the first
    read instead.
    """

    def __init__(self, scanner: EntryScanner, dir_entry: ContainerEntry):
        super().__init__()
        self.scanner = scanner
        self.base = posixpath.normpath(dir_entry.name)
        self.entry: Optional[ContainerEntry] = None
        self.error: Optional[ContainerScanError] = None
        self.state = ReaderState.READY

        try:
            self.entry = scanner.advance()
        except ContainerScanError as e:
            self.error = e
            self.state = ReaderState.ERRORED
            return
        if self.entry is None:
            self.state = ReaderState.EXHAUSTED

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        if self.state is ReaderState.ERRORED:
            error, self.error = self.error, None
            self.state = ReaderState.EXHAUSTED
            raise error
        if len(b) == 0:
            return 0

        while self.state is ReaderState.READY:
            if parent_dir(self.entry.name) != self.base:
                self.state = ReaderState.EXHAUSTED
                break

            try:
                n = self.entry.readinto(b)
                if n:
                    return n
                self.entry = self.scanner.advance()
            except ContainerScanError:
                self.entry = None
                self.state = ReaderState.EXHAUSTED
                raise

            if self.entry is None:
                self.state = ReaderState.EXHAUSTED

        return 0


def open_dir_reader(scanner: EntryScanner, dir_name: str) -> DirReader:
    """Scans forward to the directory entry `dir_name` and opens a DirReader on it."""
    target = posixpath.normpath(dir_name)
    for entry in scanner:
        if entry.is_dir() and posixpath.normpath(entry.name) == target:
            return DirReader(scanner, entry)
    raise FileNotFoundInArchiveError(dir_name, f'Directory "{dir_name}" not found in archive')


def read_dir_from_archive(path: str, dir_name: str) -> bytes:
    """Reads all files directly inside `dir_name` of a (compressed) archive, concatenated."""
    with open_archive(path) as archive, EntryScanner(archive) as scanner:
        with open_dir_reader(scanner, dir_name) as reader:
            return reader.read()
