#!/usr/bin/env python3
"""
Tests for TCP and HTTP probes
Servers are bound to 127.0.0.1 only
"""

import asyncio
import socket

import aiohttp
import pytest
from aiohttp import web

from judas.core.models import ProbeOutcome
from judas.core.probes import HttpProbe, PortProbe, TrackedProbe
from judas.core.registry import ConnectionRegistry


class SlowProbe(TrackedProbe):
    """Attempt that never finishes on its own"""

    name = "slow"

    async def _attempt(self, host, port, timeout):
        await asyncio.sleep(30)
        return True


class FailingProbe(TrackedProbe):
    name = "failing"

    async def _attempt(self, host, port, timeout):
        raise ConnectionResetError("reset by peer")


def unused_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def start_tcp_server(respond=True):
    async def handle(reader, writer):
        if respond:
            writer.close()
        else:
            await asyncio.sleep(30)

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    return server, server.sockets[0].getsockname()[1]


async def start_http_server(status=200):
    async def handler(request):
        return web.Response(status=status)

    app = web.Application()
    app.router.add_route("HEAD", "/", handler)
    runner = web.AppRunner(app)
    await runner.setup()

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    site = web.SockSite(runner, sock)
    await site.start()
    return runner, sock.getsockname()[1]


def test_open_port():
    async def go():
        registry = ConnectionRegistry()
        server, port = await start_tcp_server()
        try:
            result = await PortProbe(registry, timeout=2.0).probe("127.0.0.1", port)
        finally:
            server.close()
            await server.wait_closed()
        return result, len(registry)

    result, active = asyncio.run(go())

    assert result.outcome is ProbeOutcome.OPEN
    assert result.is_open
    assert result.target == ("127.0.0.1", result.port)
    assert active == 0


def test_closed_port_resolves_within_timeout():
    registry = ConnectionRegistry()
    port = unused_port()

    result = asyncio.run(PortProbe(registry, timeout=1.0).probe("127.0.0.1", port))

    assert result.outcome is ProbeOutcome.CLOSED
    assert not result.is_open
    assert result.elapsed < 1.5
    assert len(registry) == 0


def test_timer_wins_over_hanging_attempt():
    registry = ConnectionRegistry()

    result = asyncio.run(SlowProbe(registry, timeout=0.1).probe("127.0.0.1", 9))

    assert result.outcome is ProbeOutcome.TIMED_OUT
    assert not result.is_open
    assert 0.05 < result.elapsed < 1.0
    assert len(registry) == 0


def test_attempt_error_is_closed():
    registry = ConnectionRegistry()

    result = asyncio.run(FailingProbe(registry, timeout=1.0).probe("127.0.0.1", 9))

    assert result.outcome is ProbeOutcome.CLOSED
    assert len(registry) == 0


def test_forced_cancel_reports_cancelled():
    async def go():
        registry = ConnectionRegistry()
        task = asyncio.create_task(SlowProbe(registry, timeout=10).probe("127.0.0.1", 9))
        await asyncio.sleep(0.05)
        in_flight = len(registry)
        registry.cancel_all()
        result = await asyncio.wait_for(task, timeout=1.0)
        return in_flight, result, len(registry)

    in_flight, result, active = asyncio.run(go())

    assert in_flight == 1
    assert result.outcome is ProbeOutcome.CANCELLED
    assert active == 0


def test_outer_cancel_releases_handle():
    async def go():
        registry = ConnectionRegistry()
        task = asyncio.create_task(SlowProbe(registry, timeout=10).probe("127.0.0.1", 9))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return len(registry)

    assert asyncio.run(go()) == 0


def test_silent_server_times_out():
    async def go():
        registry = ConnectionRegistry()
        server, port = await start_tcp_server(respond=False)
        try:
            async with aiohttp.ClientSession() as session:
                result = await HttpProbe(registry, session, timeout=0.3).probe("127.0.0.1", port)
        finally:
            server.close()
        return result, len(registry)

    result, active = asyncio.run(go())

    assert not result.is_open
    assert result.outcome in (ProbeOutcome.TIMED_OUT, ProbeOutcome.CLOSED)
    assert result.elapsed < 1.5
    assert active == 0


@pytest.mark.parametrize("status", [200, 301, 404, 500])
def test_http_probe_any_status_is_open(status):
    async def go():
        registry = ConnectionRegistry()
        runner, port = await start_http_server(status)
        try:
            async with aiohttp.ClientSession() as session:
                result = await HttpProbe(registry, session, timeout=2.0).probe("127.0.0.1", port)
        finally:
            await runner.cleanup()
        return result, len(registry)

    result, active = asyncio.run(go())

    assert result.outcome is ProbeOutcome.OPEN
    assert active == 0


def test_http_probe_closed_port():
    async def go():
        registry = ConnectionRegistry()
        async with aiohttp.ClientSession() as session:
            return await HttpProbe(registry, session, timeout=1.0).probe("127.0.0.1", unused_port())

    result = asyncio.run(go())

    assert result.outcome is ProbeOutcome.CLOSED
