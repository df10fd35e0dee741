import pytest

from conftest import DATA_ENTRIES
from tarslice_cli import main


def test_no_arguments_prints_help(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 1
    assert "usage" in capsys.readouterr().err


def test_cat_to_file(make_archive, tmp_path, capsys):
    out = tmp_path / "part2.bin"
    main(["cat", make_archive(DATA_ENTRIES, ".xz"), "data/part2", "-o", str(out)])
    assert out.read_bytes() == b"efghij"
    assert "Wrote 6 bytes" in capsys.readouterr().err


def test_cat_to_stdout(make_archive, capsysbinary):
    main(["cat", make_archive(DATA_ENTRIES, ".gz"), "other/c"])
    assert capsysbinary.readouterr().out == b"not part of data"


def test_cat_missing_entry(make_archive, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["cat", make_archive(DATA_ENTRIES), "data/part3"])
    assert exc_info.value.code == 1
    assert 'Entry "data/part3" not found' in capsys.readouterr().err


def test_cat_dir_to_file(make_archive, tmp_path):
    out = tmp_path / "data.bin"
    main(["cat-dir", make_archive(DATA_ENTRIES, ".zst"), "data", "-o", str(out)])
    assert out.read_bytes() == b"abcdefghij"


def test_cat_dir_to_stdout(make_archive, capsysbinary):
    main(["cat-dir", make_archive(DATA_ENTRIES, ".bz2"), "data"])
    assert capsysbinary.readouterr().out == b"abcdefghij"


def test_cat_dir_missing_directory(make_archive, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["cat-dir", make_archive(DATA_ENTRIES), "nope"])
    assert exc_info.value.code == 1
    assert 'Directory "nope" not found' in capsys.readouterr().err


def test_list(make_archive, capsys):
    main(["list", make_archive(DATA_ENTRIES, ".gz")])
    assert capsys.readouterr().out.splitlines() == [name for name, _ in DATA_ENTRIES]


def test_list_long(make_archive, capsys):
    main(["list", "-l", make_archive(DATA_ENTRIES)])
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split() == ["Type", "Size", "Name"]
    assert lines[2].split() == ["Dir", "0", "data"]
    assert lines[3].split() == ["File", "4", "data/part1"]


def test_unsupported_format(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["list", str(tmp_path / "archive.zip")])
    assert exc_info.value.code == 1
    assert "Unsupported archive format" in capsys.readouterr().err


def test_missing_archive(tmp_path, capsys):
    with pytest.raises(SystemExit):
        main(["cat", str(tmp_path / "missing.tar"), "x"])
    assert "could not be opened" in capsys.readouterr().err
