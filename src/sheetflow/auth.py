"""
API key check for whatever serves tables to clients.
Framework agnostic: hand it the request headers as a mapping and it raises
SheetFlowAuthenticationError when the key is missing or unknown.
"""
from collections.abc import Iterable, Mapping
import hmac
import logging

from .errors import SheetFlowAuthenticationError

logger = logging.getLogger(__name__)

class ApiKeyAuth():
    def __init__(self, keys: Iterable[str], header: str = "x-api-key") -> None:
        self.keys = [str(k) for k in keys if k]
        if not self.keys:
            raise ValueError("ApiKeyAuth needs at least one key")
        self.header = header.lower()

    def __repr__(self) -> str:
        return f"{self.__class__}:{self.header}({len(self.keys)} keys)"

    def _lookup(self, headers: Mapping[str, str]) -> str|None:
        # header names are case insensitive
        for k, v in headers.items():
            if str(k).lower() == self.header:
                return str(v)
        return None

    def check(self, headers: Mapping[str, str]) -> None:
        key = self._lookup(headers)
        # compare against every key so timing doesn't say which one was close
        valid = key is not None and any([hmac.compare_digest(key.encode(), k.encode()) for k in self.keys])
        if not valid:
            logger.debug("rejected request with %s api key", "bad" if key else "missing")
            raise SheetFlowAuthenticationError("Invalid API key")

    def __call__(self, headers: Mapping[str, str]) -> None:
        self.check(headers)
