"""
Unit tests for request dispatch.
"""

import asyncio

import pytest

from minihttp.http.dispatcher import dispatch, run_middleware
from minihttp.http.request import HTTPMethod, HTTPRequest, parse_request
from minihttp.http.response import HTTPResponse, bad_request, ok
from minihttp.http.router import HandlerKind, Router


@pytest.fixture
def router() -> Router:
    router = Router()

    @router.get("/")
    def index(request: HTTPRequest) -> HTTPResponse:
        return ok("Hello world")

    @router.get("/route/:id")
    def show_route(request: HTTPRequest) -> HTTPResponse:
        return ok(f"Hello, {request.get_param('id')}")

    @router.get("/slow")
    async def slow(request: HTTPRequest) -> HTTPResponse:
        await asyncio.sleep(0.01)
        return ok("done")

    @router.post("/echo")
    def echo(request: HTTPRequest) -> HTTPResponse:
        return ok(request.body)

    @router.get("/bad")
    def bad(request: HTTPRequest):
        return "not a response"

    @router.get("/raise")
    def explode(request: HTTPRequest) -> HTTPResponse:
        raise RuntimeError("boom")

    return router


class TestDispatch:
    """Tests for dispatch()."""

    @pytest.mark.asyncio
    async def test_sync_handler(self, router: Router):
        response = await dispatch(HTTPRequest(path="/"), router)

        assert response.status == 200
        assert response.body == "Hello world"

    @pytest.mark.asyncio
    async def test_async_handler_is_awaited(self, router: Router):
        response = await dispatch(HTTPRequest(path="/slow"), router)

        assert response.body == "done"

    @pytest.mark.asyncio
    async def test_path_params_passed_to_handler(self, router: Router):
        response = await dispatch(HTTPRequest(path="/route/42"), router)

        assert response.body == "Hello, 42"

    @pytest.mark.asyncio
    async def test_original_request_not_mutated(self, router: Router):
        request = HTTPRequest(path="/route/42")
        await dispatch(request, router)

        assert request.path_params == {}

    @pytest.mark.asyncio
    async def test_body_reaches_handler(self, router: Router):
        request = parse_request(b"POST /echo HTTP/1.1\r\n\r\na=1&b=2")
        response = await dispatch(request, router)

        assert response.content_type == "application/json"
        assert response.body == '{"a":"1","b":"2"}'

    @pytest.mark.asyncio
    async def test_not_found(self, router: Router):
        response = await dispatch(HTTPRequest(path="/missing"), router)

        assert response.status == 404
        assert response.body == '{"error":"Page not found"}'

    @pytest.mark.asyncio
    async def test_wrong_method_is_not_found(self, router: Router):
        """A supported method with no route for the path is a 404, not a 405."""
        response = await dispatch(HTTPRequest(method=HTTPMethod.DELETE, path="/"), router)

        assert response.status == 404

    @pytest.mark.asyncio
    async def test_unsupported_method(self, router: Router):
        request = parse_request(b"OPTIONS / HTTP/1.1\r\n\r\n")
        response = await dispatch(request, router)

        assert response.status == 405
        assert response.body == '{"error":"This method is not allowed"}'

    @pytest.mark.asyncio
    async def test_empty_router(self):
        response = await dispatch(HTTPRequest(path="/"), Router())

        assert response.status == 404

    @pytest.mark.asyncio
    async def test_non_response_return_raises(self, router: Router):
        with pytest.raises(TypeError, match="expected HTTPResponse"):
            await dispatch(HTTPRequest(path="/bad"), router)

    @pytest.mark.asyncio
    async def test_handler_exception_propagates(self, router: Router):
        with pytest.raises(RuntimeError, match="boom"):
            await dispatch(HTTPRequest(path="/raise"), router)

    @pytest.mark.asyncio
    async def test_async_callable_object(self):
        """Objects with an async __call__ can be registered with an explicit kind."""

        class Greeter:
            async def __call__(self, request: HTTPRequest) -> HTTPResponse:
                return ok("hi")

        router = Router()
        router.add_route("GET", "/greet", Greeter(), kind=HandlerKind.ASYNC)

        response = await dispatch(HTTPRequest(path="/greet"), router)

        assert response.body == "hi"


class TestMiddleware:
    """Tests for middleware run by dispatch()."""

    @pytest.mark.asyncio
    async def test_data_reaches_handler(self, router: Router):
        def stamp(request: HTTPRequest, data: dict) -> None:
            data["user"] = "ada"

        async def tag(request: HTTPRequest, data: dict) -> None:
            await asyncio.sleep(0)
            data["seen_user"] = data.get("user", "")

        router.use(stamp)
        router.use(tag)

        @router.get("/whoami")
        def whoami(request: HTTPRequest) -> HTTPResponse:
            return ok(request.middleware_data)

        response = await dispatch(HTTPRequest(path="/whoami"), router)

        assert response.body == '{"user":"ada","seen_user":"ada"}'

    @pytest.mark.asyncio
    async def test_path_params_visible_to_middleware(self, router: Router):
        seen = []
        router.use(lambda request, data: seen.append(request.get_param("id")))

        response = await dispatch(HTTPRequest(path="/route/42"), router)

        assert seen == ["42"]
        assert response.body == "Hello, 42"

    @pytest.mark.asyncio
    async def test_response_skips_handler(self, router: Router):
        calls = []

        def deny(request: HTTPRequest, data: dict) -> HTTPResponse:
            return bad_request("Denied")

        router.use(deny)
        router.use(lambda request, data: calls.append("after"))

        response = await dispatch(HTTPRequest(path="/raise"), router)

        assert response.status == 400
        assert response.body == '{"error":"Denied"}'
        assert calls == []

    @pytest.mark.asyncio
    async def test_not_run_for_misses_or_unsupported_methods(self, router: Router):
        calls = []
        router.use(lambda request, data: calls.append(request.path))

        assert (await dispatch(HTTPRequest(path="/missing"), router)).status == 404
        assert (await dispatch(parse_request(b"HEAD / HTTP/1.1\r\n\r\n"), router)).status == 405
        assert calls == []

    @pytest.mark.asyncio
    async def test_fresh_data_per_dispatch(self, router: Router):
        sizes = []

        def count(request: HTTPRequest, data: dict) -> None:
            sizes.append(len(data))
            data["n"] = "1"

        router.use(count)

        await dispatch(HTTPRequest(path="/"), router)
        await dispatch(HTTPRequest(path="/"), router)

        assert sizes == [0, 0]

    @pytest.mark.asyncio
    async def test_bad_return_raises(self, router: Router):
        router.use(lambda request, data: "nope")

        with pytest.raises(TypeError, match="expected HTTPResponse or None"):
            await dispatch(HTTPRequest(path="/"), router)

    @pytest.mark.asyncio
    async def test_exception_propagates(self, router: Router):
        def fail(request: HTTPRequest, data: dict) -> None:
            raise RuntimeError("middleware broke")

        router.use(fail)

        with pytest.raises(RuntimeError, match="middleware broke"):
            await dispatch(HTTPRequest(path="/"), router)

    @pytest.mark.asyncio
    async def test_run_middleware_without_entries(self):
        data = {}

        assert await run_middleware([], HTTPRequest(), data) is None
        assert data == {}
