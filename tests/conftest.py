import pytest

from app import create_app
from client import TasksApi
from config import TestConfig
from models import db

from .fakes import FakeSession


@pytest.fixture()
def app():
    """Flask app backed by a fresh in-memory database."""
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def api(client):
    """TasksApi talking to the test app instead of the network."""
    return TasksApi(base_url="http://testserver/api", session=FakeSession(client))


@pytest.fixture()
def create(client):
    def _create(**fields):
        fields.setdefault('title', 'Task')
        response = client.post('/api/tasks', json=fields)
        assert response.status_code == 201, response.get_json()
        return response.get_json()['task']

    return _create
