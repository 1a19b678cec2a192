"""
API credential resolution for the Frappe site, backed by the OS keyring.
"""

from __future__ import annotations

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

KEYRING_SERVICE_NAME = "inspectionscheduler"


class FrappeAuthenticator:
    """
    Resolves the API secret for token authentication.

    Lookup order:
    1. ``api_secret`` given explicitly (config file)
    2. OS keyring entry ``inspectionscheduler`` / ``<site_url>:<api_key>``
    """

    def __init__(self, site_url: str, api_key: str, api_secret: Optional[str] = None):
        self.site_url = site_url.rstrip("/")
        self.api_key = api_key
        self._configured_secret = api_secret
        self._key_identifier = f"{self.site_url}:{self.api_key}"

    @property
    def key_identifier(self) -> str:
        return self._key_identifier

    def get_api_secret(self) -> str:
        """
        Return the API secret for the configured key.

        Raises:
            AuthenticationError: If no key is configured or no secret can be found
        """
        if not self.api_key:
            raise AuthenticationError("No api_key configured for the record store")

        if self._configured_secret:
            return self._configured_secret

        try:
            secret = keyring.get_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except KeyringError as exc:
            raise AuthenticationError(f"Reading credentials from the keyring failed: {exc}") from exc

        if not secret:
            raise AuthenticationError(
                f"No API secret found for {self._key_identifier}. "
                "Add api_secret to the config or run 'store-secret'."
            )

        return secret

    def store_api_secret(self, secret: str) -> None:
        """Save the API secret in the OS keyring."""
        try:
            keyring.set_password(KEYRING_SERVICE_NAME, self._key_identifier, secret)
        except KeyringError as exc:
            raise AuthenticationError(f"Writing credentials to the keyring failed: {exc}") from exc
        logger.info("Stored API secret for %s in keyring", self._key_identifier)

    def clear_api_secret(self) -> bool:
        """
        Remove the stored API secret.

        Returns:
            True if an entry was removed, False if none existed
        """
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except PasswordDeleteError:
            return False
        except KeyringError as exc:
            logger.warning("Could not remove credentials from keyring: %s", exc)
            return False
        return True
