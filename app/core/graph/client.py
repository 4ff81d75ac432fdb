"""Low-level HTTP client for Microsoft Graph.

Handles token acquisition through azure-identity credentials and HTTP operations.
"""
from __future__ import annotations
import logging
from typing import Optional, Dict, Any

import requests
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import ClientSecretCredential, ManagedIdentityCredential

from .exceptions import GraphAPIError, GraphAuthenticationError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10
GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"


class GraphClient:
    """HTTP client for Microsoft Graph with credential-backed bearer tokens.

    Token caching and refresh are delegated to the azure-identity credential,
    which returns a cached token until it is close to expiry.

    Usage:
        client = GraphClient(credential=ManagedIdentityCredential())
        response = client.get("/users/$count", headers={"ConsistencyLevel": "eventual"})
    """

    def __init__(self, base_url: Optional[str] = None, credential=None, scope: str = GRAPH_SCOPE):
        """Initialize Graph client.

        Args:
            base_url: Graph base URL including version (defaults to v1.0 endpoint)
            credential: Any azure-identity credential exposing get_token()
            scope: OAuth scope requested for the token
        """
        self.base_url = (base_url or GRAPH_BASE_URL).rstrip("/")
        self.credential = credential
        self.scope = scope

    def _bearer_token(self) -> str:
        if self.credential is None:
            raise GraphAuthenticationError("No credential configured for Microsoft Graph")
        try:
            return self.credential.get_token(self.scope).token
        except ClientAuthenticationError as exc:
            raise GraphAuthenticationError(f"Failed to acquire Graph token: {exc}") from exc

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = dict(extra or {})
        headers["Authorization"] = f"Bearer {self._bearer_token()}"
        return headers

    def _url(self, path: str) -> str:
        # nextLink values are absolute
        if path.startswith("https://"):
            return path
        return f"{self.base_url}{path}"

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute GET request.

        Raises:
            GraphAPIError: On HTTP error
        """
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.get(self._url(path), params=params, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        self._handle_error(resp)
        return resp

    def post(self, path: str, json: Optional[Dict[str, Any]] = None, **kwargs) -> requests.Response:
        """Execute POST request with a JSON body.

        Raises:
            GraphAPIError: On HTTP error
        """
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.post(self._url(path), json=json, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        self._handle_error(resp)
        return resp

    def _handle_error(self, resp: requests.Response) -> None:
        """Centralized error handling for HTTP responses.

        Graph error bodies look like {"error": {"code": "...", "message": "..."}}.

        Raises:
            GraphAPIError: If response status indicates error
        """
        if resp.status_code < 400:
            return

        error_code = ""
        message = resp.text
        try:
            error = resp.json().get("error") or {}
            error_code = error.get("code", "")
            message = error.get("message") or message
        except ValueError:
            pass

        logger.error("Graph error: status=%s code=%s url=%s", resp.status_code, error_code, resp.url)
        raise GraphAPIError(resp.status_code, message, resp.url, error_code)


def create_credential(tenant_id: str, client_id: str, client_secret: str, use_managed_identity: bool):
    """Return the credential for Graph: managed identity in Azure, client secret elsewhere.

    Args:
        tenant_id: Entra tenant ID (ignored for managed identity)
        client_id: App registration client ID, or user-assigned identity client ID
        client_secret: App registration secret (development only)
        use_managed_identity: Use the hosting environment's managed identity
    """
    if use_managed_identity:
        logger.info("Using managed identity for Microsoft Graph")
        if client_id:
            return ManagedIdentityCredential(client_id=client_id)
        return ManagedIdentityCredential()

    if not (tenant_id and client_id and client_secret):
        raise GraphAuthenticationError(
            "AZURE_TENANT_ID, AZURE_CLIENT_ID and AZURE_CLIENT_SECRET are required "
            "when AZURE_USE_MANAGED_IDENTITY is false"
        )
    logger.info("Using client secret credential for Microsoft Graph (client_id=%s)", client_id)
    return ClientSecretCredential(tenant_id=tenant_id, client_id=client_id, client_secret=client_secret)


def create_graph_client(cfg) -> GraphClient:
    """Build a GraphClient from application configuration.

    Args:
        cfg: AppConfig instance
    """
    credential = create_credential(
        cfg.azure_tenant_id,
        cfg.azure_client_id,
        cfg.azure_client_secret,
        cfg.azure_use_managed_identity,
    )
    return GraphClient(cfg.graph_base_url, credential)
