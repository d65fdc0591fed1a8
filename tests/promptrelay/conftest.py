import httpx
import pytest

from promptrelay import app as app_module
from promptrelay.provider import ProviderClient

from fakes import FakeProvider


@pytest.fixture
def provider(monkeypatch):
    """Route every provider call made by the app to an in-memory fake."""
    fake = FakeProvider()

    def factory(cfg):
        return ProviderClient(cfg, transport=httpx.MockTransport(fake.handle))

    monkeypatch.setattr(app_module._forwarder, "client_factory", factory)
    return fake
