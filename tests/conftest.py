import bz2
import gzip
import io
import lzma
import tarfile

import pytest
import zstandard as zstd

import tarslice

COMPRESSORS = {
    ".tar": lambda data: data,
    ".gz": gzip.compress,
    ".bz2": bz2.compress,
    ".xz": lzma.compress,
    ".zst": lambda data: zstd.ZstdCompressor().compress(data),
}


def build_tar(entries) -> bytes:
    """Builds an uncompressed tar from (name, data) pairs; data None makes a directory entry."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.GNU_FORMAT) as tf:
        for name, data in entries:
            info = tarfile.TarInfo(name)
            if data is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tf.addfile(info)
            else:
                info.size = len(data)
                tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def read_all(stream, chunk_size=4096) -> bytes:
    out = bytearray()
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        out += chunk
    return bytes(out)


@pytest.fixture
def make_archive(tmp_path):
    def _make(entries, ext=".tar", name="archive"):
        suffix = ext if ext == ".tar" else f".tar{ext}"
        path = tmp_path / f"{name}{suffix}"
        path.write_bytes(COMPRESSORS[ext](build_tar(entries)))
        return str(path)

    return _make


@pytest.fixture
def opened_files(monkeypatch):
    """Records every file tarslice opens."""
    files = []
    real_open = open

    def tracking_open(*args, **kwargs):
        f = real_open(*args, **kwargs)
        files.append(f)
        return f

    monkeypatch.setattr(tarslice, "open", tracking_open, raising=False)
    return files


DATA_ENTRIES = [
    ("data", None),
    ("data/part1", b"abcd"),
    ("data/part2", b"efghij"),
    ("other", None),
    ("other/c", b"not part of data"),
]
