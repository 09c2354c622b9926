"""Server Lifecycle: verifies construction, serving and bounded graceful shutdown.

Invariants:
    - Construction moves uninitialized -> initialized and freezes the Config
    - serve() listens on 127.0.0.1 until the shutdown event, then stops
    - Shutdown returns within exit_timeout even with a request still in flight
    - Once serve() returns the port refuses connections, however short exit_timeout
    - A listener that cannot bind is logged, not raised
    - start() maps SIGINT onto the shutdown event

Design Decisions:
    - Port 0 everywhere: the OS picks a free port, read back via bound_port
"""

import asyncio
import logging
import os
import signal
import socket
import threading
import time

import httpx
import pytest
from starlette.responses import PlainTextResponse

from apiserver.core.errors import ConfigurationFrozenError, DuplicatePrefixError
from apiserver.core.lifecycle import ServerState
from apiserver.core.specification import APISpecification
from apiserver.server import LOOPBACK_HOST, Server


async def hang(path_vars, request):
    await asyncio.sleep(60)
    return PlainTextResponse("never")


async def wait_listening(server: Server, timeout: float = 5.0) -> int:
    deadline = time.monotonic() + timeout
    while server.bound_port is None:
        if time.monotonic() > deadline:
            raise AssertionError("server never started listening")
        await asyncio.sleep(0.01)
    return server.bound_port


@pytest.fixture
def ephemeral_config(config):
    return config.set_port(0).set_exit_timeout(2)


def test_construction_initializes_and_freezes(ephemeral_config):
    server = Server(ephemeral_config)
    assert server.state is ServerState.INITIALIZED
    assert server.bound_port is None
    with pytest.raises(ConfigurationFrozenError):
        ephemeral_config.set_port(1)


def test_construction_error_propagates_and_leaves_config_mutable(ephemeral_config):
    ephemeral_config.add_specification(APISpecification("v1"))
    ephemeral_config.add_specification(APISpecification("v1"))
    with pytest.raises(DuplicatePrefixError):
        Server(ephemeral_config)
    assert not ephemeral_config.frozen


def test_listener_config_binds_loopback(ephemeral_config):
    ephemeral_config.set_read_timeout(7)
    cfg = Server(ephemeral_config).listener_config()
    assert cfg.host == LOOPBACK_HOST
    assert cfg.port == 0
    assert cfg.timeout_keep_alive == 7
    assert cfg.timeout_graceful_shutdown == 2


async def test_serve_until_shutdown_event(ephemeral_config):
    server = Server(ephemeral_config)
    shutdown = asyncio.Event()
    task = asyncio.create_task(server.serve(shutdown))
    port = await wait_listening(server)
    assert server.state is ServerState.LISTENING

    async with httpx.AsyncClient(trust_env=False) as client:
        res = await client.get(f"http://{LOOPBACK_HOST}:{port}/api/health")
    assert res.json() == {"ok": True}

    shutdown.set()
    await asyncio.wait_for(task, 5)
    assert server.state is ServerState.STOPPED


async def test_serve_twice_rejected(ephemeral_config):
    server = Server(ephemeral_config)
    shutdown = asyncio.Event()
    task = asyncio.create_task(server.serve(shutdown))
    await wait_listening(server)
    shutdown.set()
    await asyncio.wait_for(task, 5)
    with pytest.raises(RuntimeError):
        await server.serve(shutdown)


async def test_shutdown_bounded_by_exit_timeout(ephemeral_config):
    ephemeral_config.set_exit_timeout(0.5).set_write_timeout(0)
    ephemeral_config.new_specification("v1").add_get_path("/hang", hang)
    server = Server(ephemeral_config)
    shutdown = asyncio.Event()
    task = asyncio.create_task(server.serve(shutdown))
    port = await wait_listening(server)

    async def long_request():
        async with httpx.AsyncClient(timeout=30, trust_env=False) as client:
            return await client.get(f"http://{LOOPBACK_HOST}:{port}/api/v1/hang")

    in_flight = asyncio.create_task(long_request())
    await asyncio.sleep(0.2)

    started = time.monotonic()
    shutdown.set()
    await asyncio.wait_for(task, 5)
    elapsed = time.monotonic() - started

    assert server.state is ServerState.STOPPED
    assert elapsed < 2.0
    in_flight.cancel()
    await asyncio.gather(in_flight, return_exceptions=True)


async def test_bind_failure_logged_not_raised(ephemeral_config, caplog):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind((LOOPBACK_HOST, 0))
        blocker.listen()
        taken = blocker.getsockname()[1]
        ephemeral_config.set_port(taken)
        server = Server(ephemeral_config)
        shutdown = asyncio.Event()
        with caplog.at_level(logging.ERROR, logger="apiserver"):
            task = asyncio.create_task(server.serve(shutdown))
            await asyncio.sleep(0.5)
            shutdown.set()
            await asyncio.wait_for(task, 5)
    assert server.state is ServerState.STOPPED
    assert any("listener" in r.getMessage() for r in caplog.records)


@pytest.mark.skipif(os.name == "nt", reason="POSIX signals")
def test_start_stops_on_sigint(ephemeral_config):
    server = Server(ephemeral_config)

    def interrupt_when_listening():
        deadline = time.monotonic() + 5
        while server.bound_port is None and time.monotonic() < deadline:
            time.sleep(0.01)
        os.kill(os.getpid(), signal.SIGINT)

    interrupter = threading.Thread(target=interrupt_when_listening, daemon=True)
    started = time.monotonic()
    interrupter.start()
    server.start()
    interrupter.join(1)

    assert server.state is ServerState.STOPPED
    assert time.monotonic() - started < 10


@pytest.mark.parametrize("exit_timeout", [0, 0.05])
async def test_port_closed_after_short_exit_timeout(ephemeral_config, exit_timeout):
    ephemeral_config.set_exit_timeout(exit_timeout)
    server = Server(ephemeral_config)
    shutdown = asyncio.Event()
    task = asyncio.create_task(server.serve(shutdown))
    port = await wait_listening(server)

    shutdown.set()
    await asyncio.wait_for(task, 5)

    assert server.state is ServerState.STOPPED
    with pytest.raises(OSError):
        _, writer = await asyncio.open_connection(LOOPBACK_HOST, port)
        writer.close()
