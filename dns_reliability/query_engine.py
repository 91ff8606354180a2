"""
Core DNS query engine.

Performs single, cancellable resolution attempts against a given
server and reports their latency and outcome.
"""

import asyncio
import logging
import time
from typing import Optional

import dns.exception
import dns.message
import dns.rcode
import dns.rdatatype

from .models import ProbeError, QueryStatus, RecordType, Transport
from .transports import BaseTransport, create_transport

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1.0


class DNSQueryEngine:
    """
    Resolution client used by the target pollers.

    Each attempt is one query with a bounded timeout. An attempt
    never raises for DNS or network failures; the failure is returned
    as a ProbeError next to the measured latency.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Transport = Transport.UDP,
        record_type: RecordType = RecordType.A,
    ):
        """
        Initialize the query engine.

        Args:
            timeout: Per-attempt timeout in seconds
            transport: Transport protocol used for every attempt
            record_type: Record type requested by every attempt
        """
        if timeout <= 0:
            raise ValueError("DNS timeout must be a positive number")
        self.timeout = timeout
        self.transport = transport
        self.record_type = record_type
        self._transports: dict[str, BaseTransport] = {}

    def prepare(self, server: str) -> BaseTransport:
        """
        Get or create the transport for a server.

        Raises:
            ValueError: If no transport can be built for the server
        """
        if server not in self._transports:
            self._transports[server] = create_transport(self.transport, server)
            LOGGER.debug("Created %s transport for %s", self.transport.value, server)
        return self._transports[server]

    def _create_query_message(self, query: str) -> dns.message.Message:
        """Create a DNS query message."""
        rdtype = dns.rdatatype.from_text(self.record_type.value)
        return dns.message.make_query(query, rdtype)

    def _check_response(
        self,
        response: dns.message.Message,
        query: str,
        server: str,
    ) -> Optional[ProbeError]:
        """Turn a DNS response into None (success) or a ProbeError."""
        rcode = response.rcode()

        if rcode == dns.rcode.NOERROR:
            if response.answer:
                return None
            return ProbeError(
                QueryStatus.NODATA,
                f"lookup {query} on {server}: no {self.record_type.value} records",
            )
        elif rcode == dns.rcode.NXDOMAIN:
            status = QueryStatus.NXDOMAIN
            reason = "no such host"
        elif rcode == dns.rcode.SERVFAIL:
            status = QueryStatus.SERVFAIL
            reason = "server misbehaving"
        elif rcode == dns.rcode.REFUSED:
            status = QueryStatus.REFUSED
            reason = "query refused"
        else:
            status = QueryStatus.ERROR
            reason = f"unexpected rcode {dns.rcode.to_text(rcode)}"
        return ProbeError(status, f"lookup {query} on {server}: {reason}")

    async def _query(
        self,
        transport: BaseTransport,
        message: dns.message.Message,
        cancel: Optional[asyncio.Event],
    ) -> dns.message.Message:
        """Run one query, aborting it as soon as `cancel` is set."""
        query_task = asyncio.ensure_future(transport.query(message, self.timeout))
        if cancel is None:
            return await query_task

        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {query_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_task.cancel()
            if not query_task.done():
                query_task.cancel()

        if query_task in done:
            return query_task.result()

        # Let the aborted query release its socket
        await asyncio.wait({query_task})
        raise ProbeError(QueryStatus.CANCELLED, "operation was canceled")

    async def resolve(
        self,
        server: str,
        query: str,
        cancel: Optional[asyncio.Event] = None,
    ) -> tuple[float, Optional[ProbeError]]:
        """
        Execute a single resolution attempt.

        Args:
            server: IPv4 address of the DNS server
            query: Name to resolve
            cancel: Optional signal that aborts the attempt when set

        Returns:
            Tuple of (latency in seconds, error or None on success)
        """
        transport = self.prepare(server)
        target = f"{transport.server}:{transport.port}"

        start = time.perf_counter_ns()
        try:
            message = self._create_query_message(query)
            response = await self._query(transport, message, cancel)
            error = self._check_response(response, query, target)
        except ProbeError as e:
            error = e
        except dns.exception.Timeout:
            error = ProbeError(
                QueryStatus.TIMEOUT,
                f"lookup {query} on {target}: i/o timeout",
            )
        except (OSError, dns.exception.DNSException) as e:
            error = ProbeError(QueryStatus.ERROR, f"lookup {query} on {target}: {e}")
        latency = (time.perf_counter_ns() - start) / 1_000_000_000

        if error is not None:
            LOGGER.debug("Probe of %s failed: %s", target, error)
        return latency, error

    async def close(self):
        """Forget all transports."""
        self._transports.clear()
