import base64
import json

import pytest
from sanic import Sanic
from sanic_testing import TestManager
from sanic.log import logger

from build_relay.config import Config
from build_relay.models import PubSubMessage

PUSH_AUDIENCE = "https://relay.example.com/pubsub"
PUSH_SERVICE_ACCOUNT = "pubsub-push@p1.iam.gserviceaccount.com"


class StaticAuth:
    def __init__(self, token="test-token"):
        self.token = token

    async def authorization(self):
        return {"Authorization": f"Bearer {self.token}"}


def fake_verify_oauth2_token(token, request, audience=None):
    if token != "good-token" or audience != PUSH_AUDIENCE:
        raise ValueError("Could not verify token signature.")
    return {
        "aud": audience,
        "email": PUSH_SERVICE_ACCOUNT,
        "email_verified": True,
    }


@pytest.fixture
def config():
    config = Config(
        CHAT_WEBHOOK="https://chat.example.com/v1/spaces/abc/messages?key=secret",
        CLOUD_BUILD_API_URL="https://cloudbuild.example.com/v1",
        TRIGGER_LOOKUP_FATAL=True,
        OUTBOUND_TIMEOUT=None,
        VERIFY_PUSH_TOKEN=True,
        PUSH_AUDIENCE=PUSH_AUDIENCE,
        PUSH_SERVICE_ACCOUNT=PUSH_SERVICE_ACCOUNT,
        OVERRIDE_LOGGING="DEBUG",
    )

    logger.setLevel(config.OVERRIDE_LOGGING)

    return config


@pytest.fixture
def auth():
    return StaticAuth()


@pytest.fixture(autouse=True)
def verify_oauth2_token(monkeypatch):
    monkeypatch.setattr(
        "google.oauth2.id_token.verify_oauth2_token", fake_verify_oauth2_token
    )
    return fake_verify_oauth2_token


@pytest.fixture(scope="function")
def app(config, auth) -> Sanic:
    """Create a Sanic app for testing."""
    from build_relay.web import create_app

    Sanic.test_mode = True
    app = create_app(config=config, auth=auth)
    TestManager(app)
    return app


@pytest.fixture
def make_message():
    def _make(payload, **attributes) -> PubSubMessage:
        data = base64.b64encode(json.dumps(payload).encode()).decode()
        return PubSubMessage(
            data=data,
            attributes=attributes,
            messageId="1234",
            publishTime="2021-01-01T00:05:01Z",
        )

    return _make
