import pytest

from realtime.registry import SessionRegistry
from realtime.relay import RelayServer
from tests.helpers import FakePeer


@pytest.fixture(autouse=True)
def in_memory_channel_layer(settings):
    # Changing CHANNEL_LAYERS resets Channels' cached layers: fresh queues per test.
    settings.CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def relay(registry):
    return RelayServer(registry, send_timeout=0.2)


@pytest.fixture
def make_peer():
    counter = iter(range(1, 1000))

    def _make(**kwargs) -> FakePeer:
        return FakePeer(f"conn-{next(counter)}", **kwargs)

    return _make
