import pytest

from calcforge.app import create_app
from calcforge.config import Settings
from calcforge.storage.repository import CalculatorRepository


@pytest.fixture
def settings(tmp_path):
    return Settings(database_path=str(tmp_path / "calculators.db"))


@pytest.fixture
def repository(settings):
    return CalculatorRepository(settings.database_path).init_db()


@pytest.fixture
def app(settings, repository):
    app = create_app(settings=settings, repository=repository)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
