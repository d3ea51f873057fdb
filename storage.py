"""
In-memory stores for authorization codes and access tokens.

Both stores guard their dict with a ``threading.Lock``. AuthManager hands the
same lock to both so the whole grant state lives in one mutual-exclusion
domain; every critical section is a handful of dict operations.
"""

import threading
from typing import Dict, Optional

from models import AccessToken, AuthorizationCode

class CodeStore:
    """Registry of issued authorization codes with single-use semantics"""

    def __init__(self, lock: Optional[threading.Lock] = None):
        self._lock = lock or threading.Lock()
        self._codes: Dict[str, AuthorizationCode] = {}

    def put(self, code: AuthorizationCode) -> None:
        with self._lock:
            self._codes[code.code] = code

    def take(self, code_value: str) -> Optional[AuthorizationCode]:
        """Remove and return the code, expired or not.

        Exactly one of any number of concurrent callers observes the entry;
        the rest get None.
        """
        with self._lock:
            return self._codes.pop(code_value, None)

    def purge_expired(self, now: float) -> int:
        with self._lock:
            expired = [value for value, code in self._codes.items() if code.is_expired(now)]
            for value in expired:
                del self._codes[value]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._codes)

class TokenStore:
    """Registry of issued access tokens"""

    def __init__(self, lock: Optional[threading.Lock] = None):
        self._lock = lock or threading.Lock()
        self._tokens: Dict[str, AccessToken] = {}

    def put(self, token: AccessToken) -> None:
        with self._lock:
            self._tokens[token.token] = token

    def get(self, token_value: str) -> Optional[AccessToken]:
        """Non-destructive lookup; callers check expiry themselves"""
        with self._lock:
            return self._tokens.get(token_value)

    def purge_expired(self, now: float) -> int:
        with self._lock:
            expired = [value for value, token in self._tokens.items() if token.is_expired(now)]
            for value in expired:
                del self._tokens[value]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)
