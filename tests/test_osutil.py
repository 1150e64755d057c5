import pytest

from cnabkit.osutil import ensure_directory, ensure_file, exists


def test_exists(tmp_path):
    name = tmp_path / "osutil"
    name.write_text("x")
    assert exists(name) is True
    name.unlink()
    assert exists(name) is False


def test_ensure_directory(tmp_path):
    directory = tmp_path / "osutil" / "nested"
    ensure_directory(directory)
    assert exists(directory) is True
    assert directory.is_dir()
    ensure_directory(directory)
    assert directory.is_dir()


def test_ensure_directory_on_file(tmp_path):
    name = tmp_path / "osutil"
    name.write_text("x")
    with pytest.raises(NotADirectoryError) as excinfo:
        ensure_directory(name)
    assert str(excinfo.value) == f"{name} must be a directory"


def test_ensure_file(tmp_path):
    name = tmp_path / "osutil"
    ensure_file(name)
    assert exists(name) is True
    assert name.read_bytes() == b""


def test_ensure_file_keeps_content(tmp_path):
    name = tmp_path / "osutil"
    name.write_text("keep")
    ensure_file(name)
    assert name.read_text() == "keep"


def test_ensure_file_on_directory(tmp_path):
    with pytest.raises(IsADirectoryError) as excinfo:
        ensure_file(tmp_path)
    assert str(excinfo.value) == f"{tmp_path} must not be a directory"