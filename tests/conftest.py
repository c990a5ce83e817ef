"""Shared fixtures."""

import pytest

from radar.config import Settings
from radar.events import EventBus
from radar.models import DiscoveryMethod, NetworkService
from radar.store import DiscoveryStore


class EventRecorder:
    """Collects published events for assertions."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def __call__(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def payloads(self, name: str) -> list[dict]:
        return [payload for event, payload in self.events if event == name]


@pytest.fixture
def store():
    return DiscoveryStore()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def events(recorder):
    bus = EventBus()
    bus.subscribe(recorder)
    return bus


@pytest.fixture
def fast_settings():
    return Settings(
        mdns_window=0.2,
        mdns_poll_interval=0.01,
        ssdp_timeout=0.05,
        probe_timeout=0.1,
    )


def make_service(
    address: str,
    port: int | None,
    service_type: str,
    method: DiscoveryMethod = DiscoveryMethod.NETWORK_SCAN,
    name: str | None = None,
    details: str | None = None,
) -> NetworkService:
    return NetworkService(
        name=name or f"{service_type} on {address}",
        service_type=service_type,
        address=address,
        port=port,
        discovery_method=method,
        details=details,
    )
