"""B2B guest invitation operations."""
from __future__ import annotations
import logging

from .client import GraphClient

logger = logging.getLogger(__name__)


class InvitationService:
    """Service for inviting external users into the tenant."""

    def __init__(self, client: GraphClient):
        self.client = client

    def invite(self, email: str, display_name: str, redirect_url: str, send_message: bool = True) -> dict:
        """Send a guest invitation.

        Returns:
            Invitation representation (inviteRedeemUrl, status, invitedUser.id)
        """
        body = {
            "invitedUserEmailAddress": email,
            "invitedUserDisplayName": display_name,
            "inviteRedirectUrl": redirect_url,
            "sendInvitationMessage": send_message,
            "invitedUserType": "guest",
        }
        resp = self.client.post("/invitations", json=body)
        logger.info("Invitation sent to %s", email)
        return resp.json()
