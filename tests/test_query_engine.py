import asyncio

import dns.exception
import dns.message
import dns.rcode
import dns.rdatatype
import dns.rrset
import pytest

import dns_reliability.query_engine as query_engine
from dns_reliability.models import QueryStatus, RecordType, Transport
from dns_reliability.query_engine import DNSQueryEngine
from dns_reliability.transports import BaseTransport


class ScriptedTransport(BaseTransport):
    transport_type = Transport.UDP

    def __init__(self, server, respond):
        super().__init__(server)
        self.respond = respond
        self.messages = []

    async def query(self, message, timeout):
        self.messages.append((message, timeout))
        return await self.respond(message)


def _install(monkeypatch, respond):
    created = []

    def _factory(transport_type, server):
        transport = ScriptedTransport(server, respond)
        created.append(transport)
        return transport

    monkeypatch.setattr(query_engine, "create_transport", _factory)
    return created


def _response(message, rcode=dns.rcode.NOERROR, answer=True):
    response = dns.message.make_response(message)
    response.set_rcode(rcode)
    if answer:
        name = message.question[0].name
        response.answer.append(dns.rrset.from_text(name, 300, "IN", "A", "192.0.2.10"))
    return response


def test_successful_attempt_returns_no_error(monkeypatch):
    async def respond(message):
        return _response(message)

    created = _install(monkeypatch, respond)
    engine = DNSQueryEngine(timeout=0.5)

    latency, error = asyncio.run(engine.resolve("192.0.2.1", "example.test"))

    assert error is None
    assert latency >= 0
    message, timeout = created[0].messages[0]
    assert timeout == 0.5
    assert str(message.question[0].name) == "example.test."


@pytest.mark.parametrize(
    ("rcode", "status", "reason"),
    [
        (dns.rcode.NXDOMAIN, QueryStatus.NXDOMAIN, "no such host"),
        (dns.rcode.SERVFAIL, QueryStatus.SERVFAIL, "server misbehaving"),
        (dns.rcode.REFUSED, QueryStatus.REFUSED, "query refused"),
        (dns.rcode.FORMERR, QueryStatus.ERROR, "unexpected rcode FORMERR"),
    ],
)
def test_error_rcodes_become_probe_errors(monkeypatch, rcode, status, reason):
    async def respond(message):
        return _response(message, rcode=rcode, answer=False)

    _install(monkeypatch, respond)

    _, error = asyncio.run(DNSQueryEngine().resolve("192.0.2.1", "example.test"))

    assert error.status == status
    assert str(error) == f"lookup example.test on 192.0.2.1:53: {reason}"


def test_empty_answer_is_a_failure(monkeypatch):
    async def respond(message):
        return _response(message, answer=False)

    _install(monkeypatch, respond)

    _, error = asyncio.run(DNSQueryEngine().resolve("192.0.2.1", "example.test"))

    assert error.status == QueryStatus.NODATA
    assert "no A records" in str(error)


def test_timeout_becomes_probe_error(monkeypatch):
    async def respond(message):
        raise dns.exception.Timeout()

    _install(monkeypatch, respond)

    _, error = asyncio.run(DNSQueryEngine().resolve("192.0.2.1", "example.test"))

    assert error.status == QueryStatus.TIMEOUT
    assert str(error) == "lookup example.test on 192.0.2.1:53: i/o timeout"


def test_socket_error_becomes_probe_error(monkeypatch):
    async def respond(message):
        raise ConnectionRefusedError("connection refused")

    _install(monkeypatch, respond)

    _, error = asyncio.run(DNSQueryEngine().resolve("192.0.2.1", "example.test"))

    assert error.status == QueryStatus.ERROR
    assert "connection refused" in str(error)


def test_cancellation_aborts_outstanding_attempt(monkeypatch):
    aborted = []

    async def respond(message):
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            aborted.append(True)
            raise

    _install(monkeypatch, respond)

    async def scenario():
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.02, cancel.set)
        return await asyncio.wait_for(
            DNSQueryEngine().resolve("192.0.2.1", "example.test", cancel),
            timeout=5,
        )

    latency, error = asyncio.run(scenario())

    assert error.status == QueryStatus.CANCELLED
    assert latency < 5
    assert aborted == [True]


def test_transport_is_created_once_per_server(monkeypatch):
    async def respond(message):
        return _response(message)

    created = _install(monkeypatch, respond)
    engine = DNSQueryEngine()

    async def scenario():
        await engine.resolve("192.0.2.1", "example.test")
        await engine.resolve("192.0.2.1", "example.test")
        await engine.resolve("192.0.2.2", "example.test")

    asyncio.run(scenario())

    assert [t.server for t in created] == ["192.0.2.1", "192.0.2.2"]


def test_record_type_is_used_in_query(monkeypatch):
    async def respond(message):
        return _response(message)

    created = _install(monkeypatch, respond)
    engine = DNSQueryEngine(record_type=RecordType.AAAA)

    asyncio.run(engine.resolve("192.0.2.1", "example.test"))

    message, _ = created[0].messages[0]
    assert message.question[0].rdtype == dns.rdatatype.AAAA


def test_prepare_rejects_invalid_server():
    engine = DNSQueryEngine()

    with pytest.raises(ValueError):
        engine.prepare("not-an-address")


def test_non_positive_timeout_is_rejected():
    with pytest.raises(ValueError, match="positive"):
        DNSQueryEngine(timeout=0)


@pytest.mark.parametrize("query", ["foo..example.com", "a" * 64 + ".example.com", ("a" * 60 + ".") * 5])
def test_malformed_query_name_is_a_failed_attempt(monkeypatch, query):
    async def respond(message):
        return _response(message)

    created = _install(monkeypatch, respond)
    engine = DNSQueryEngine(timeout=0.5)

    latency, error = asyncio.run(engine.resolve("192.0.2.1", query))

    assert error.status == QueryStatus.ERROR
    assert str(error).startswith(f"lookup {query} on 192.0.2.1:53: ")
    assert latency >= 0
    assert created[0].messages == []
