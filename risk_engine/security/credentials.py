"""API credential lookup: api key -> signing secret."""

import hmac
from abc import ABC, abstractmethod
from typing import Optional


class CredentialStore(ABC):

    @abstractmethod
    def secret_for(self, api_key: str) -> Optional[str]:
        """Signing secret for an API key, or None if the key is unknown."""


class StaticCredentialStore(CredentialStore):
    """Credentials from settings (API_CREDENTIALS)."""

    def __init__(self, credentials: dict[str, str]):
        self._credentials = dict(credentials)

    def secret_for(self, api_key: str) -> Optional[str]:
        # Constant-time compare against every key
        found = None
        for known_key, secret in self._credentials.items():
            if hmac.compare_digest(known_key.encode(), api_key.encode()):
                found = secret
        return found

    def __len__(self) -> int:
        return len(self._credentials)
