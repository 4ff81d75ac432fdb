"""Authentication method operations (Temporary Access Pass)."""
from __future__ import annotations
import logging

from .client import GraphClient

logger = logging.getLogger(__name__)


class AuthenticationMethodService:
    """Service for a user's authentication methods."""

    def __init__(self, client: GraphClient):
        self.client = client

    def add_temporary_access_pass(self, user_id: str, lifetime_in_minutes: int = 60,
                                  is_usable_once: bool = True) -> dict:
        """Create a Temporary Access Pass for the user.

        Args:
            user_id: Directory object ID of the user
            lifetime_in_minutes: Validity of the pass
            is_usable_once: Whether the pass is consumed on first sign-in

        Returns:
            temporaryAccessPassAuthenticationMethod representation; the code is in
            the "temporaryAccessPass" field and is only returned on creation.
        """
        body = {
            "lifetimeInMinutes": lifetime_in_minutes,
            "isUsableOnce": is_usable_once,
        }
        resp = self.client.post(
            f"/users/{user_id}/authentication/temporaryAccessPassMethods",
            json=body,
        )
        logger.info("Temporary access pass created for user id=%s (lifetime=%s min)", user_id, lifetime_in_minutes)
        return resp.json()
