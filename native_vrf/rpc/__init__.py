"""
native_vrf.rpc
==============

Transport glue: a FastAPI router over a :class:`~native_vrf.coordinator.Coordinator`
and a `requests`-based client that speaks it.
"""

from __future__ import annotations

from .client import HttpCoordinatorClient, RemoteVRFError
from .router import create_app, get_router, mount_vrf_rpc, status_for

__all__ = [
    "get_router",
    "mount_vrf_rpc",
    "create_app",
    "status_for",
    "HttpCoordinatorClient",
    "RemoteVRFError",
]
