import pytest

from audit_engine.adapters.session_memory_adapter import ConsoleNavigatorAdapter, InMemorySessionAdapter
from audit_engine.core.config import AuditEngineConfig
from audit_engine.core.managers.action_dispatcher import AuditActionDispatcher
from audit_engine.core.managers.error_classifier import ErrorClassifier
from audit_engine.core.managers.job_registry import JobRegistry
from fakes import API, FakeHttpClient, SteppingClock


# --- Fixtures ---

@pytest.fixture
def config():
    return AuditEngineConfig(api_url=API, poll_interval=0.01)


@pytest.fixture
def http():
    return FakeHttpClient()


@pytest.fixture
def session_store():
    return InMemorySessionAdapter("token-123")


@pytest.fixture
def navigator():
    return ConsoleNavigatorAdapter()


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def registry(clock):
    return JobRegistry(clock=clock)


@pytest.fixture
def dispatcher(http, registry, session_store, navigator, config):
    return AuditActionDispatcher(
        http_client=http,
        registry=registry,
        session=session_store,
        config=config,
        classifier=ErrorClassifier(session=session_store, navigator=navigator),
    )
