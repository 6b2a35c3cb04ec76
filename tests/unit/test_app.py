"""
Unit tests for the App facade and the CLI.
"""

import pytest

from minihttp import App, ServerConfig, create_app
from minihttp.__main__ import build_config, build_endpoints, build_parser, main
from minihttp.http.request import HTTPMethod
from minihttp.http.router import HandlerKind, Router


class TestApp:
    """Tests for App."""

    def test_default_config(self):
        app = App()

        assert app.config == ServerConfig()
        assert app.bound_port is None

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            App(ServerConfig(port=70000))

    def test_endpoints_decorator_returns_callback(self):
        app = create_app()

        @app.endpoints
        def routes(router):
            pass

        assert routes is not None
        assert app._endpoints is routes

    @pytest.mark.asyncio
    async def test_serve_without_endpoints(self):
        with pytest.raises(RuntimeError):
            await App().serve()

    @pytest.mark.asyncio
    async def test_serve_rejects_bad_port_override(self):
        app = App()
        app.endpoints(lambda router: None)

        with pytest.raises(ValueError):
            await app.serve(port=-1)

    def test_shutdown_before_serve(self):
        App().shutdown()


class TestCLI:
    """Tests for the command-line entry point."""

    def test_parser_defaults(self):
        args = build_parser().parse_args([])

        assert args.host is None
        assert args.port is None
        assert args.file is None

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv("HTTP_PORT", "9000")
        monkeypatch.setenv("HTTP_LOG_LEVEL", "WARNING")

        args = build_parser().parse_args(["-p", "8000", "--log-format", "json"])
        config = build_config(args)

        assert config.port == 8000
        assert config.log_level == "WARNING"
        assert config.log_format == "json"

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--version"])

        assert "minihttp 1.0.0" in capsys.readouterr().out

    def test_invalid_env_port(self, monkeypatch, capsys):
        monkeypatch.setenv("HTTP_PORT", "not-a-port")

        assert main([]) == 1
        assert "Error" in capsys.readouterr().err

    def test_demo_routes(self):
        router = Router()
        build_endpoints()(router)

        assert router.match(HTTPMethod.GET, "/").entry.path == "/"
        assert router.match(HTTPMethod.GET, "/route/7").params == {"id": "7"}
        assert router.match(HTTPMethod.POST, "/echo") is not None
        assert router.match(HTTPMethod.GET, "/slow").entry.kind is HandlerKind.ASYNC
        assert router.match(HTTPMethod.GET, "/download") is None

    def test_download_route_with_file(self, text_file):
        router = Router()
        build_endpoints(str(text_file))(router)

        response = router.match(HTTPMethod.GET, "/download").entry.handler(None)

        assert response.is_file is True
        assert response.filename == "notes.txt"
