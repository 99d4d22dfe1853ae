#!/usr/bin/env python3
"""
Tests for the liveness cascade
"""

import asyncio

import pytest

from judas.core.liveness import HostLivenessProbe, LivenessCheck, default_checks
from judas.core.models import ProbeOutcome, ProbeResult


class FakeProbe:
    def __init__(self, outcomes=None):
        self.outcomes = outcomes or {}
        self.calls = []

    async def probe(self, host, port, timeout=None):
        self.calls.append((port, timeout))
        return ProbeResult(host, port, self.outcomes.get(port, ProbeOutcome.CLOSED))


def make(http_outcomes=None, tcp_outcomes=None, **kwargs):
    http = FakeProbe(http_outcomes)
    tcp = FakeProbe(tcp_outcomes)
    return HostLivenessProbe({"http": http, "tcp": tcp}, **kwargs), http, tcp


def test_default_order():
    checks = default_checks()

    assert [(c.kind, c.port) for c in checks] == [("http", 80), ("http", 8080), ("tcp", 22)]
    assert all(c.timeout < 1.0 for c in checks)


def test_first_http_success_short_circuits():
    probe, http, tcp = make({80: ProbeOutcome.OPEN, 8080: ProbeOutcome.OPEN})

    assert asyncio.run(probe.first_match("10.0.0.1")) == "http"
    assert [port for port, _ in http.calls] == [80]
    assert tcp.calls == []


def test_falls_through_to_ssh():
    probe, http, tcp = make(tcp_outcomes={22: ProbeOutcome.OPEN})

    assert asyncio.run(probe.is_alive("10.0.0.1")) is True
    assert [port for port, _ in http.calls] == [80, 8080]
    assert [port for port, _ in tcp.calls] == [22]


def test_all_checks_fail():
    probe, http, tcp = make({80: ProbeOutcome.TIMED_OUT})

    assert asyncio.run(probe.is_alive("10.0.0.1")) is False
    assert len(http.calls) == 2
    assert len(tcp.calls) == 1


def test_cancelled_probe_ends_cascade():
    probe, http, tcp = make({80: ProbeOutcome.CANCELLED, 8080: ProbeOutcome.OPEN})

    assert asyncio.run(probe.is_alive("10.0.0.1")) is False
    assert len(http.calls) == 1
    assert tcp.calls == []


def test_cancel_flag_checked_before_each_check():
    probe, http, tcp = make(is_cancelled=lambda: True)

    assert asyncio.run(probe.is_alive("10.0.0.1")) is False
    assert http.calls == []
    assert tcp.calls == []


def test_check_timeout_passed_to_probe():
    checks = [LivenessCheck("ssh", "tcp", 22, 0.25)]
    probe, http, tcp = make(checks=checks)

    asyncio.run(probe.is_alive("10.0.0.1"))

    assert tcp.calls == [(22, 0.25)]


def test_missing_strategy_rejected():
    with pytest.raises(ValueError):
        HostLivenessProbe({"http": FakeProbe()})
