import os
import pytest
from unittest.mock import AsyncMock, MagicMock
from dotenv import load_dotenv

# Load the test environment FIRST, before any application imports, so the
# settings object is built from it.
load_dotenv(dotenv_path=os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env.test"))

from fastapi.testclient import TestClient  # noqa: E402

from convers.models.flow import Flow  # noqa: E402
from convers.services.conversation_service import ConversationService  # noqa: E402
from convers.services.conversation_store import ConversationStore  # noqa: E402
from convers.services.flow_store import FlowStore  # noqa: E402
from convers.services.tenant_service import TenantRegistry  # noqa: E402

TENANT = "acme"


class FakeChannel:
    """Records outbound messages instead of calling WhatsApp."""

    def __init__(self, available: bool = True):
        self.available = available
        self.sent = []

    def is_available(self, tenant_id: str) -> bool:
        return self.available

    async def send_message(self, tenant_id: str, party_id: str, text: str):
        self.sent.append((tenant_id, party_id, text))
        return f"wamid.{len(self.sent)}"

    def texts(self):
        return [text for _, _, text in self.sent]


def build_flow(blocks, flow_id="1", is_active=True) -> Flow:
    return Flow.model_validate({"id": flow_id, "is_active": is_active, "flow_data": {"blocks": blocks}})


@pytest.fixture
def make_flow():
    return build_flow


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def registry():
    registry = TenantRegistry()
    registry.register(TENANT, callback_base_url="https://site.example.com/", flows_endpoint="https://site.example.com/flows")
    return registry


@pytest.fixture
def flows(registry):
    return FlowStore(registry, http_client=MagicMock())


@pytest.fixture
def conversations():
    return ConversationStore()


@pytest.fixture
def notifier():
    notifier = MagicMock()
    notifier.notify_conversation_started = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
def service(flows, conversations, channel, notifier):
    return ConversationService(flows, conversations, channel, notifier, reset_keyword="#reset", max_auto_forward_hops=25)


@pytest.fixture(scope="function")
def test_client(mocker):
    """
    Provides a TestClient for API tests.
    The periodic scheduler is replaced so no background refresh runs.
    """
    from convers.main import app

    mocker.patch("convers.utils.lifecycle.create_scheduler", return_value=MagicMock())

    with TestClient(app) as client:
        yield client
