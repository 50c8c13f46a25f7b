"""Pluggable credential checks for the trigger endpoints.

The cron and end-all endpoints are hit by external timers that cannot hold a
session, so they authenticate with a shared secret. Handlers only depend on
``BaseCredentialChecker``; an alternate scheme (signed headers, an IP
allow-list) is a new subclass set on ``app.state.credential_checker``.
"""

import hmac
from abc import ABC, abstractmethod

from fastapi import Request


class BaseCredentialChecker(ABC):
    """Abstract base class for credential checks."""

    scheme: str = "unknown"

    @abstractmethod
    def check(self, request: Request) -> bool:
        """
        Decide whether the request carries valid credentials.

        Args:
            request: The incoming request

        Returns:
            True if the request is authorized
        """
        pass


class SharedSecretChecker(BaseCredentialChecker):
    """Compare a query parameter against a shared secret in constant time."""

    scheme = "shared_secret"

    def __init__(self, secret: str, param: str = "key") -> None:
        self.secret = secret
        self.param = param

    def check(self, request: Request) -> bool:
        supplied = request.query_params.get(self.param)
        if not supplied or not self.secret:
            return False
        return hmac.compare_digest(supplied.encode(), self.secret.encode())
