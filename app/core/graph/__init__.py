"""Microsoft Graph client library.

This package provides a small, testable interface to the Graph operations used
during onboarding.

Architecture:
- client.py: HTTP client with credential-backed bearer tokens
- users.py: User creation, lookup and counting
- authentication.py: Temporary Access Pass issuance
- invitations.py: B2B guest invitations
- exceptions.py: Typed exceptions for error handling

Usage:
    from app.core.graph import GraphClient, UserService, create_credential

    client = GraphClient(credential=create_credential(tenant, client_id, secret, False))
    users = UserService(client)
    print(users.count_users())
"""
from .client import (
    GraphClient,
    create_credential,
    create_graph_client,
    REQUEST_TIMEOUT,
    GRAPH_BASE_URL,
    GRAPH_SCOPE,
)
from .exceptions import (
    GraphError,
    GraphAPIError,
    GraphAuthenticationError,
)
from .users import UserService
from .authentication import AuthenticationMethodService
from .invitations import InvitationService

__all__ = [
    # Client
    "GraphClient",
    "create_credential",
    "create_graph_client",
    "REQUEST_TIMEOUT",
    "GRAPH_BASE_URL",
    "GRAPH_SCOPE",

    # Exceptions
    "GraphError",
    "GraphAPIError",
    "GraphAuthenticationError",

    # Services
    "UserService",
    "AuthenticationMethodService",
    "InvitationService",
]
