import pytest

from modcatalog.core import Database, IngestionPipeline
from modcatalog.core.config import reset_config
from modcatalog.core.paths import Paths


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "catalog.db"))
    yield database
    database.close()


@pytest.fixture
def pipeline(db):
    return IngestionPipeline(db, workers=4)


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the user data directory (config + default db) at tmp_path."""
    directory = tmp_path / "data"
    directory.mkdir()
    monkeypatch.setenv(Paths.ENV_DATA_DIR, str(directory))
    Paths.reset()
    reset_config()
    yield directory
    Paths.reset()
    reset_config()
