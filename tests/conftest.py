"""
Shared fixtures for folderhost tests.
"""
import pytest

from folderhost import config as config_module
from folderhost.config import resolve_configuration


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep environment overrides and the global configuration out of tests."""
    monkeypatch.delenv("FOLDERHOST_ROOT", raising=False)
    monkeypatch.delenv("FOLDERHOST_TEMP_DIR", raising=False)
    monkeypatch.setattr(config_module, "_config", None)


@pytest.fixture
def site(tmp_path):
    """A small hosted directory."""
    root = tmp_path / "site"
    (root / "docs").mkdir(parents=True)
    (root / "index.html").write_text("<h1>home</h1>", encoding="utf-8")
    (root / "docs" / "readme.txt").write_text("hello world", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("top secret", encoding="utf-8")
    return root


@pytest.fixture
def temp_root(tmp_path):
    staging_root = tmp_path / "staging"
    staging_root.mkdir()
    return staging_root


@pytest.fixture
def config(site):
    return resolve_configuration({"directory": str(site)})


@pytest.fixture
def write_config(site, temp_root):
    return resolve_configuration({
        "directory": str(site),
        "allow_write": True,
        "temp_dir": str(temp_root),
    })
