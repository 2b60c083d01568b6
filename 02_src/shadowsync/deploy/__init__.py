"""Deployment endpoint module."""

from .auth import DeviceTokenProvider, ITokenProvider, StaticTokenProvider
from .client import DeploymentClient, DeployResult, IDeploymentClient

__all__ = [
    "DeploymentClient",
    "DeployResult",
    "DeviceTokenProvider",
    "IDeploymentClient",
    "ITokenProvider",
    "StaticTokenProvider",
]
