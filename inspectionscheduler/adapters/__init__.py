"""
Adapters layer - External integrations (Frappe record store).
"""

from .frappe_authenticator import FrappeAuthenticator
from .frappe_client import FrappeClient
from .mock_frappe_client import MockFrappeClient

__all__ = ["FrappeAuthenticator", "FrappeClient", "MockFrappeClient"]
