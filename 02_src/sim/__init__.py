"""SIM module."""

from .broker import ISimBroker, SimBroker

__all__ = ["ISimBroker", "SimBroker"]
