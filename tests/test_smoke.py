from __future__ import annotations

from typer.testing import CliRunner

import capwire
from capwire import Client, Dispatcher, LocalTransport, Registry
from capwire.main import app

runner = CliRunner()


def test_public_api_exports() -> None:
    for name in capwire.__all__:
        assert hasattr(capwire, name), name


def test_app_help() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "describe" in result.stdout
    assert "call" in result.stdout


def test_minimal_round_trip() -> None:
    registry = Registry()
    registry.add_function("echo", lambda value, reply: reply(None, value), "1.0.0")

    replies: list[tuple[object, ...]] = []
    client = Client(LocalTransport(Dispatcher(registry)))
    client.refresh(lambda *_: client.rpc.echo("hi", lambda *args: replies.append(args)))

    assert replies == [(None, "hi")]
