import uuid
from types import SimpleNamespace

import pytest

from services.common.core import request_context


def test_generate_request_id_creates_uuid():
    """Ensure generate_request_id() creates a UUIDv4 and sets it in context."""
    req_id = request_context.generate_request_id()

    assert isinstance(req_id, str)
    try:
        uuid_obj = uuid.UUID(req_id)
        assert str(uuid_obj) == req_id
    except ValueError:
        pytest.fail(f"Generated ID is not a valid UUID: {req_id}")

    assert request_context.get_request_id() == req_id


def test_generate_request_id_is_unique():
    """Ensure a different ID is generated each call."""
    id1 = request_context.generate_request_id()
    id2 = request_context.generate_request_id()

    assert id1 != id2


def test_bind_request_id_prefers_platform_context():
    request_context.clear_request_id()

    assert request_context.bind_request_id({"requestId": "fc-req-1"}) == "fc-req-1"
    assert request_context.get_request_id() == "fc-req-1"

    ctx = SimpleNamespace(request_id="fc-req-2")
    assert request_context.bind_request_id(ctx) == "fc-req-2"


def test_bind_request_id_generates_when_context_is_opaque():
    request_context.clear_request_id()

    req_id = request_context.bind_request_id(None)

    assert uuid.UUID(req_id)
    assert request_context.get_request_id() == req_id


def test_clear_request_id():
    request_context.set_request_id("abc")
    request_context.clear_request_id()

    assert request_context.get_request_id() is None
