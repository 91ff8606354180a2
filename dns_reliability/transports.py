"""
DNS transport implementations.

Provides transport classes for the protocols a probe can use:
- UDP (standard DNS)
- TCP (DNS over TCP)

Each transport sends one query to a fixed server address and
returns the raw response message.
"""

import ipaddress
from abc import ABC, abstractmethod

import dns.asyncquery
import dns.message

from .models import Transport


DNS_PORT = 53


class BaseTransport(ABC):
    """Base class for DNS transports bound to one server."""

    transport_type: Transport

    def __init__(self, server: str, port: int = DNS_PORT):
        """
        Initialize the transport.

        Args:
            server: IPv4 address of the DNS server
            port: DNS server port

        Raises:
            ValueError: If the server is not a valid IPv4 address
        """
        self.server = str(ipaddress.IPv4Address(server))
        self.port = port

    @abstractmethod
    async def query(
        self,
        message: dns.message.Message,
        timeout: float,
    ) -> dns.message.Message:
        """Send a DNS query and return the response."""
        pass


class UDPTransport(BaseTransport):
    """Standard DNS over UDP."""

    transport_type = Transport.UDP

    async def query(
        self,
        message: dns.message.Message,
        timeout: float,
    ) -> dns.message.Message:
        """Send DNS query over UDP."""
        return await dns.asyncquery.udp(
            message,
            self.server,
            timeout=timeout,
            port=self.port,
        )


class TCPTransport(BaseTransport):
    """DNS over TCP."""

    transport_type = Transport.TCP

    async def query(
        self,
        message: dns.message.Message,
        timeout: float,
    ) -> dns.message.Message:
        """Send DNS query over TCP."""
        return await dns.asyncquery.tcp(
            message,
            self.server,
            timeout=timeout,
            port=self.port,
        )


def create_transport(transport_type: Transport, server: str) -> BaseTransport:
    """
    Create a transport instance for the given type and server.

    Args:
        transport_type: Type of transport to create
        server: IPv4 address of the DNS server

    Returns:
        Appropriate transport instance

    Raises:
        ValueError: If the server address or transport is invalid
    """
    if transport_type == Transport.UDP:
        return UDPTransport(server)
    elif transport_type == Transport.TCP:
        return TCPTransport(server)
    else:
        raise ValueError(f"Unknown transport type: {transport_type}")
