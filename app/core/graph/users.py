"""Entra ID user operations."""
from __future__ import annotations
import logging

from .client import GraphClient

logger = logging.getLogger(__name__)


class UserService:
    """Service for managing directory users."""

    def __init__(self, client: GraphClient):
        """Initialize user service.

        Args:
            client: Graph client
        """
        self.client = client

    def create_user(self, payload: dict) -> dict:
        """Create a user (member or guest) from a Graph user representation.

        Args:
            payload: Graph user resource (accountEnabled, userPrincipalName, ...)

        Returns:
            Created user representation (contains "id" and "userPrincipalName")
        """
        resp = self.client.post("/users", json=payload)
        created = resp.json()
        logger.info("Created %s user %s (id=%s)", payload.get("userType", "member"),
                    created.get("userPrincipalName"), created.get("id"))
        return created

    def count_users(self) -> int:
        """Return the number of users in the tenant.

        The $count segment requires the advanced query header.
        """
        resp = self.client.get("/users/$count", headers={"ConsistencyLevel": "eventual"})
        return int(resp.text.strip().lstrip("\ufeff"))
