import os

import pytest

# Keep test runs independent of a developer .env and of the YAML log config.
os.environ.setdefault("LOG_CONFIG_PATH", "")

from services.bridge.config import BridgeConfig  # noqa: E402
from services.bridge.core.request_translator import translate_request  # noqa: E402
from services.bridge.models.envelope import InboundEnvelope  # noqa: E402


class FakeChannel:
    """Platform response channel double."""

    def __init__(self, fail_send: bool = False, failures: int = 0):
        self.status_code = 200
        self.headers = {}
        self.sent = []
        self.fail_send = fail_send
        self.failures = failures

    def set_header(self, key, value):
        self.headers[key] = value

    def remove_header(self, key):
        self.headers.pop(key, None)

    def send(self, body):
        if self.fail_send or self.failures:
            self.failures = max(self.failures - 1, 0)
            raise IOError("channel closed")
        self.sent.append(body)


@pytest.fixture
def fake_channel():
    return FakeChannel()


@pytest.fixture
def failing_channel():
    return FakeChannel(fail_send=True)


@pytest.fixture
def flaky_channel():
    """Channel whose first send fails."""
    return FakeChannel(failures=1)


@pytest.fixture
def make_request():
    def _make(method="GET", path="/", query="", headers=None, body=None, client_ip=None):
        envelope = InboundEnvelope(
            method=method,
            path=path,
            rawQueryString=query,
            headers=headers or {},
            body=body,
            clientIP=client_ip,
        )
        return translate_request(envelope)

    return _make


@pytest.fixture
def static_root(tmp_path):
    root = tmp_path / "static"
    root.mkdir()
    (root / "index.html").write_text("<html><body>redeem</body></html>", encoding="utf-8")
    return root


@pytest.fixture
def settings(static_root):
    return BridgeConfig(
        _env_file=None,
        STATIC_ROOT=str(static_root),
        LOG_CONFIG_PATH="",
        INVOKE_TIMEOUT=1.0,
    )
