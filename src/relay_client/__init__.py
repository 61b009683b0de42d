"""
Relay Client Package

Async client for the ephemeral room relay and a terminal front end.
"""

from .service import ClientService, JoinRejectedError

__all__ = [
    "ClientService",
    "JoinRejectedError",
]
