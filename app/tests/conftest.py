import sys
from pathlib import Path

# Ensure the application root (app/) is on sys.path so `courier` and `jobs`
# import during collection regardless of where pytest is invoked from.
project_root = str(Path(__file__).resolve().parents[1])
if project_root not in sys.path:
    sys.path.insert(0, project_root)

import pytest

from courier.configuration import get_settings
from courier.events import clear_handlers
from courier.logging import clear_request_context
from courier.notifications import (
    ChannelDispatcher,
    InMemoryNotificationLogRepository,
    InMemoryPreferenceRepository,
    NotificationMetrics,
    NotificationPreferenceService,
    TimeoutConfig,
)
from courier.resilience import InMemoryDeadLetterStore, clear_circuit_breaker_registry
from courier.services import providers
from tests.factories.notifications import (
    FakeClock,
    ScriptedAdapter,
    make_dead_letter_entry,
    make_event,
    make_log_entry,
    make_payload,
    make_recipient,
)


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset process-wide registries and caches between tests."""
    clear_circuit_breaker_registry()
    clear_handlers()
    clear_request_context()
    get_settings.cache_clear()
    providers.get_notification_service.cache_clear()
    providers.get_notification_metrics.cache_clear()
    providers.get_dead_letter_store.cache_clear()
    providers.get_log_repository.cache_clear()
    providers.get_inbox.cache_clear()
    providers.get_whatsapp_status_processor.cache_clear()
    yield
    clear_circuit_breaker_registry()
    clear_handlers()
    clear_request_context()
    get_settings.cache_clear()


@pytest.fixture
def metrics():
    """Metrics recorder on its own CollectorRegistry."""
    return NotificationMetrics()


@pytest.fixture
def timeout_config():
    return TimeoutConfig()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def dead_letter_store():
    return InMemoryDeadLetterStore()


@pytest.fixture
def log_repository():
    return InMemoryNotificationLogRepository()


@pytest.fixture
def preference_repository():
    return InMemoryPreferenceRepository()


@pytest.fixture
def preference_service(preference_repository):
    return NotificationPreferenceService(preference_repository)


@pytest.fixture
def scripted_adapter_factory(metrics, timeout_config):
    """Factory for adapters whose send() follows a script.

    Example:
        adapter = scripted_adapter_factory(NotificationChannel.SMS, [ProviderTransientError("503")])
    """

    def _factory(channel, script=None):
        return ScriptedAdapter(channel, metrics, timeout_config, script=script)

    return _factory


@pytest.fixture
def dispatcher_factory():
    def _factory(*adapters):
        return ChannelDispatcher(adapters)

    return _factory


@pytest.fixture
def payload_factory():
    return make_payload


@pytest.fixture
def recipient_factory():
    return make_recipient


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def log_entry_factory():
    return make_log_entry


@pytest.fixture
def dead_letter_entry_factory():
    return make_dead_letter_entry
