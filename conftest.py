import pytest

from catalogue import storage
from catalogue.config import settings
from catalogue.library import Library
from catalogue.ui_helpers import OUTPUT_MODE_ENV


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    # Every test gets its own data directory and plain, unmasked prompts
    monkeypatch.setattr(settings, "data_dir", str(tmp_path))
    monkeypatch.setattr(settings, "hide_password", False)
    monkeypatch.setattr(settings, "loan_limit", 3)
    monkeypatch.setenv(OUTPUT_MODE_ENV, "plain")
    yield


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path


@pytest.fixture
def paths(data_dir):
    return storage.DataPaths.from_dir(str(data_dir))


@pytest.fixture
def lib(data_dir):
    """A library loaded from freshly seeded default files."""
    return Library.open(str(data_dir))
