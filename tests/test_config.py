"""
Test configuration resolution.
"""
import argparse
import os
import tempfile
from pathlib import Path

import pytest

from folderhost.config import (
    Configuration,
    DirectoryReference,
    get_config,
    parse_port,
    resolve_configuration,
    staging_suffix,
)
from folderhost.errors import ConfigError, InvalidDirectory, InvalidPort


def test_hosted_directory_is_canonical(site):
    """The hosted path equals the OS-canonical form of the input."""
    config = resolve_configuration({"directory": str(site / "docs" / "..")})
    assert config.hosted_directory.path == Path(os.path.realpath(site))
    assert config.hosted_directory.display == str(site / "docs" / "..")


def test_defaults_to_working_directory(site, monkeypatch):
    monkeypatch.chdir(site)
    config = resolve_configuration({})
    assert config.hosted_directory.path == Path(os.path.realpath(site))
    assert config.hosted_directory.display == "."
    assert config.port is None
    assert config.follow_symlinks is False
    assert config.temp_directory is None
    assert config.allow_write is False
    assert config.port_range == (8000, 9999)


def test_root_from_environment(site, monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("FOLDERHOST_ROOT", str(site))
    config = resolve_configuration({})
    assert config.hosted_directory.path == Path(os.path.realpath(site))


def test_missing_directory(tmp_path):
    with pytest.raises(InvalidDirectory) as excinfo:
        resolve_configuration({"directory": str(tmp_path / "nope")})
    assert excinfo.value.path == str(tmp_path / "nope")
    assert isinstance(excinfo.value, ConfigError)


def test_file_is_not_a_directory(site):
    with pytest.raises(InvalidDirectory) as excinfo:
        resolve_configuration({"directory": str(site / "index.html")})
    assert "not actually a directory" in str(excinfo.value)


@pytest.mark.parametrize("raw,expected", [
    (None, None),
    ("8080", 8080),
    (" 0 ", 0),
    ("+80", 80),
    (65535, 65535),
])
def test_parse_port(raw, expected):
    assert parse_port(raw) == expected


@pytest.mark.parametrize("raw", ["65536", "-1", "http", "80.5", "", True, 70000, "\uff18\uff10\uff18\uff10", "\u0668\u0660"])
def test_invalid_port(raw):
    with pytest.raises(InvalidPort) as excinfo:
        parse_port(raw)
    assert excinfo.value.raw == raw


def test_invalid_port_from_options(site):
    with pytest.raises(InvalidPort):
        resolve_configuration({"directory": str(site), "port": "abc"})


def test_staging_suffix():
    assert staging_suffix(Path("/home/user/site")) == "folderhost--home-user-site"
    assert staging_suffix("\\\\?\\C:\\Users\\me\\site") == "folderhost-C-Users-me-site"


def test_write_mode_with_explicit_temp_dir(site, temp_root):
    config = resolve_configuration({
        "directory": str(site),
        "allow_write": True,
        "temp_dir": str(temp_root),
    })
    suffix = staging_suffix(Path(os.path.realpath(site)))
    assert config.allow_write
    assert config.temp_directory.path == Path(os.path.realpath(temp_root)) / suffix
    assert config.temp_directory.display == f"{temp_root}/{suffix}"
    # Resolution has no side effects
    assert not config.temp_directory.path.exists()


def test_write_mode_display_keeps_single_separator(site, temp_root):
    config = resolve_configuration({
        "directory": str(site),
        "allow_write": True,
        "temp_dir": str(temp_root) + "/",
    })
    assert "//folderhost-" not in config.temp_directory.display


def test_write_mode_defaults_to_system_temp(site):
    config = resolve_configuration({"directory": str(site), "allow_write": True})
    assert config.temp_directory.display.startswith("$TEMP/folderhost-")
    assert config.temp_directory.path.parent == Path(tempfile.gettempdir()).resolve()


def test_write_mode_temp_dir_from_environment(site, temp_root, monkeypatch):
    monkeypatch.setenv("FOLDERHOST_TEMP_DIR", str(temp_root))
    config = resolve_configuration({"directory": str(site), "allow_write": True})
    assert config.temp_directory.path.parent == Path(os.path.realpath(temp_root))


def test_write_mode_missing_temp_dir(site, tmp_path):
    with pytest.raises(InvalidDirectory):
        resolve_configuration({
            "directory": str(site),
            "allow_write": True,
            "temp_dir": str(tmp_path / "missing"),
        })


def test_temp_dir_ignored_without_write_mode(site, tmp_path):
    config = resolve_configuration({"directory": str(site), "temp_dir": str(tmp_path / "missing")})
    assert config.temp_directory is None


def test_accepts_argparse_namespace(site):
    args = argparse.Namespace(directory=str(site), port="9001", follow_symlinks=True,
                              allow_write=False, temp_dir=None, quiet=True)
    config = resolve_configuration(args)
    assert config.port == 9001
    assert config.follow_symlinks is True


def test_configuration_is_immutable(config):
    with pytest.raises(AttributeError):
        config.port = 1234


def test_directory_reference_resolve(site):
    ref = DirectoryReference.resolve(str(site))
    assert ref.path.is_dir()
    assert ref.display == str(site)


def test_get_info(write_config):
    info = write_config.get_info()
    assert info["allow_write"] is True
    assert info["port"] is None
    assert info["port_range"] == [8000, 9999]
    assert info["temp_directory"] == write_config.temp_directory.display


def test_get_config_caches(site):
    first = get_config({"directory": str(site)})
    assert isinstance(first, Configuration)
    assert get_config() is first


def test_get_config_refuses_second_resolution(site):
    """Once resolved, the global configuration is never replaced."""
    first = get_config({"directory": str(site)})
    with pytest.raises(ConfigError):
        get_config({"directory": str(site), "port": 8123})
    assert get_config() is first
    assert get_config().port is None
