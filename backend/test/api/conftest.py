import pytest
from fastapi.testclient import TestClient

from dealflow.api.dependencies import build_services, get_current_user, get_notifier, get_workflow
from dealflow.config.settings import Settings
from main import app


@pytest.fixture
def services(seeded):
    by_name = {store.collection_name: store for store in seeded.values()}
    settings = Settings(environment="testing", storage_backend="memory")
    return build_services(settings, collection_factory=lambda name: by_name[name])


@pytest.fixture
def client(services):
    app.dependency_overrides[get_workflow] = lambda: services.workflow
    app.dependency_overrides[get_notifier] = lambda: services.notifications
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """Act as the given identity for subsequent requests"""
    def act_as(identity):
        app.dependency_overrides[get_current_user] = lambda: identity
    return act_as
