import pytest

from services.bridge.chain import Application
from services.bridge.core.response_adapter import ResponseAdapter


class DoneRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args)


@pytest.fixture
def done():
    return DoneRecorder()


@pytest.mark.asyncio
async def test_middleware_runs_in_order_then_done(make_request, done):
    order = []
    app = Application()

    async def first(request, response, call_next):
        order.append("first")
        await call_next()
        order.append("first-after")

    def second(request, response, call_next):
        order.append("second")
        return call_next()

    app.use(first).use(second)

    await app(make_request(), ResponseAdapter(), done)

    assert order == ["first", "second", "first-after"]
    assert done.calls == [()]


@pytest.mark.asyncio
async def test_route_matches_method_path_and_params(make_request, done):
    app = Application()

    async def show(request, response, call_next):
        response.json({"id": request.params["item_id"]})

    app.get("/items/:item_id", show)
    response = ResponseAdapter()

    await app(make_request(path="/items/42"), response, done)

    assert response.body == '{"id": "42"}'
    assert done.calls == []


@pytest.mark.asyncio
async def test_route_does_not_match_other_method(make_request, done):
    app = Application()
    app.post("/items", lambda request, response, call_next: response.end("created"))
    response = ResponseAdapter()

    await app(make_request(method="GET", path="/items"), response, done)

    assert response.terminal is False
    assert done.calls == [()]


@pytest.mark.asyncio
async def test_get_route_answers_head(make_request, done):
    app = Application()
    app.get("/ping", lambda request, response, call_next: response.send("pong"))
    response = ResponseAdapter()

    await app(make_request(method="HEAD", path="/ping"), response, done)

    assert response.body == "pong"


@pytest.mark.asyncio
async def test_prefix_middleware(make_request, done):
    seen = []
    app = Application()

    async def api_only(request, response, call_next):
        seen.append(request.path)
        await call_next()

    app.use("/api", api_only)

    await app(make_request(path="/api/orders"), ResponseAdapter(), done)
    await app(make_request(path="/api"), ResponseAdapter(), done)
    await app(make_request(path="/apix"), ResponseAdapter(), done)
    await app(make_request(path="/"), ResponseAdapter(), done)

    assert seen == ["/api/orders", "/api"]


@pytest.mark.asyncio
async def test_next_with_error_skips_to_error_handler(make_request, done):
    app = Application()
    skipped = []

    async def fail(request, response, call_next):
        await call_next(ValueError("bad input"))

    async def never(request, response, call_next):
        skipped.append(True)

    async def handle(err, request, response, call_next):
        response.status(400).json({"error": str(err)})

    app.use(fail).use(never).use_error(handle)
    response = ResponseAdapter()

    await app(make_request(), response, done)

    assert skipped == []
    assert response.status_code == 400
    assert response.body == '{"error": "bad input"}'
    assert done.calls == []


@pytest.mark.asyncio
async def test_raised_exception_reaches_error_handler(make_request, done):
    app = Application()
    caught = []

    async def explode(request, response, call_next):
        raise KeyError("missing")

    async def handle(err, request, response, call_next):
        caught.append(err)
        response.status(500).end()

    app.get("/", explode).use_error(handle)

    await app(make_request(), ResponseAdapter(), done)

    assert isinstance(caught[0], KeyError)


@pytest.mark.asyncio
async def test_unhandled_error_is_passed_to_done(make_request, done):
    app = Application()
    error = RuntimeError("nobody handles me")

    async def fail(request, response, call_next):
        await call_next(error)

    app.use(fail)

    await app(make_request(), ResponseAdapter(), done)

    assert done.calls == [(error,)]


@pytest.mark.asyncio
async def test_error_handler_can_pass_error_on(make_request, done):
    app = Application()
    error = RuntimeError("passed on")

    async def fail(request, response, call_next):
        raise error

    async def log_only(err, request, response, call_next):
        await call_next(err)

    app.use(fail).use_error(log_only)

    await app(make_request(), ResponseAdapter(), done)

    assert done.calls == [(error,)]


def test_routes_lists_registered_routes():
    app = Application()
    app.use(lambda request, response, call_next: None)
    app.get("/", lambda request, response, call_next: None)
    app.post("/api/orders", lambda request, response, call_next: None)

    assert app.routes() == [
        {"path": "/", "methods": "GET"},
        {"path": "/api/orders", "methods": "POST"},
    ]


def test_use_with_path_requires_handler():
    with pytest.raises(TypeError):
        Application().use("/api")
