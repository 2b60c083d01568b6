"""Transport module."""

from .session import ITransportSession, TransportSession, compute_latency_ms

__all__ = ["ITransportSession", "TransportSession", "compute_latency_ms"]
