import base64
import json

import pytest

from services.bridge.config import OutboundConvention
from services.bridge.core.commit import (
    DEFAULT_JSON_BODY,
    AlreadyCommittedError,
    Committer,
    encode_body,
    materialize_body,
)
from services.bridge.core.exceptions import BridgeError
from services.bridge.core.response_adapter import ResponseRecord


def _record(status_code=200, body=None, **headers):
    record = ResponseRecord(status_code=status_code, body=body, terminal=True)
    for key, value in headers.items():
        record.set_header(key.replace("_", "-"), value)
    return record


def test_result_convention_returns_http_shaped_dict():
    record = _record(201, '{"id": 7}', X_Request="abc")

    result = Committer(OutboundConvention.RESULT).commit(record)

    assert result == {
        "statusCode": 201,
        "headers": {"Content-Type": "application/json", "X-Request": "abc"},
        "body": '{"id": 7}',
        "isBase64Encoded": False,
    }


@pytest.mark.parametrize("empty", [None, "", b""])
def test_empty_json_body_gets_default_success_body(empty):
    result = Committer(OutboundConvention.RESULT).commit(_record(body=empty))

    assert json.loads(result["body"]) == DEFAULT_JSON_BODY


def test_empty_non_json_body_is_not_substituted():
    record = _record(body="", Content_Type="text/plain")

    assert materialize_body(record) == ""


def test_no_body_status_drops_body():
    record = _record(204, None)

    assert materialize_body(record) == ""


def test_binary_body_is_base64_encoded():
    png = b"\x89PNG\r\n\x1a\n\x00"
    record = _record(body=png, Content_Type="image/png")

    result = Committer("result").commit(record)

    assert result["isBase64Encoded"] is True
    assert base64.b64decode(result["body"]) == png


def test_textual_bytes_are_decoded():
    assert encode_body(b"<p>hi</p>", "text/html") == ("<p>hi</p>", False)
    assert encode_body("already text", "image/png") == ("already text", False)
    assert encode_body(b"\xff\xfe", "text/plain")[1] is True


def test_channel_convention_writes_platform_response(fake_channel):
    record = _record(404, '{"error": "File not found"}')

    result = Committer(OutboundConvention.CHANNEL, fake_channel).commit(record)

    assert result is None
    assert fake_channel.status_code == 404
    assert fake_channel.headers == {"Content-Type": "application/json"}
    assert fake_channel.sent == ['{"error": "File not found"}']


def test_commit_happens_once(fake_channel):
    committer = Committer(OutboundConvention.CHANNEL, fake_channel)
    record = _record(body="x", Content_Type="text/plain")

    committer.commit(record)
    with pytest.raises(AlreadyCommittedError):
        committer.commit(record)

    assert fake_channel.sent == ["x"]


def test_writes_after_commit_are_not_observed(fake_channel):
    record = _record(body="x", Content_Type="text/plain")

    Committer(OutboundConvention.CHANNEL, fake_channel).commit(record)
    record.set_header("X-Late", "1")
    record.body = "changed"

    assert "X-Late" not in fake_channel.headers
    assert fake_channel.sent == ["x"]


def test_channel_convention_requires_channel():
    with pytest.raises(BridgeError):
        Committer(OutboundConvention.CHANNEL).commit(_record(body="x"))


def test_commit_error_result():
    result = Committer(OutboundConvention.RESULT).commit_error(RuntimeError("kaput"))

    body = json.loads(result["body"])
    assert result["statusCode"] == 500
    assert result["headers"]["Content-Type"] == "application/json"
    assert body["error"] == "kaput"
    assert "timestamp" in body


def test_commit_error_channel_is_best_effort(failing_channel):
    committer = Committer(OutboundConvention.CHANNEL, failing_channel)

    # The channel refuses the write; nothing may escape.
    assert committer.commit_error(RuntimeError("kaput")) is None
    assert failing_channel.status_code == 500
    assert committer.committed is True


def test_commit_error_drops_headers_from_failed_channel_commit(flaky_channel):
    committer = Committer(OutboundConvention.CHANNEL, flaky_channel)
    record = _record(body="<p>hi</p>", Content_Type="text/html", X_RateLimit_Limit="100")

    with pytest.raises(IOError):
        committer.commit(record)
    committer.commit_error(IOError("channel closed"))

    assert flaky_channel.status_code == 500
    assert flaky_channel.headers == {"Content-Type": "application/json"}
    assert json.loads(flaky_channel.sent[0])["error"] == "channel closed"


def test_commit_error_writes_error_headers_last_without_remove_header():
    class AppendOnlyChannel:
        def __init__(self):
            self.status_code = 200
            self.headers = {}
            self.sent = []
            self.closed = True

        def set_header(self, key, value):
            self.headers[key] = value

        def send(self, body):
            if self.closed:
                self.closed = False
                raise IOError("channel closed")
            self.sent.append(body)

    channel = AppendOnlyChannel()
    committer = Committer(OutboundConvention.CHANNEL, channel)

    with pytest.raises(IOError):
        committer.commit(_record(body="<p>hi</p>", Content_Type="text/html"))
    committer.commit_error(IOError("channel closed"))

    assert channel.headers["Content-Type"] == "application/json"
    assert channel.status_code == 500
