"""Gunicorn configuration file with secret loading.

Secret Loading Priority (post_fork hook):
1. /run/secrets (Docker secrets)
   → Read by app/config/settings.py, nothing to do here
2. Azure Key Vault direct access
   → Only when /run/secrets is empty AND AZURE_USE_KEYVAULT=true
   → Uses DefaultAzureCredential (managed identity on App Service)

Threaded workers keep a request that waits for a new account to replicate
from holding up the other requests of the same worker.
"""
import os

wsgi_app = "app.flask_app:create_app()"
bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
worker_class = "gthread"
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
threads = int(os.environ.get("GUNICORN_THREADS", "8"))
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "60"))


def post_fork(server, worker):
    """
    Called just after a worker has been forked, before the app is loaded.
    """
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"
    if demo_mode and os.environ.get("AZURE_USE_KEYVAULT", "false").lower() == "true":
        worker.log.warning("DEMO_MODE=true requires AZURE_USE_KEYVAULT=false (runtime guard)")
        os.environ["AZURE_USE_KEYVAULT"] = "false"

    from pathlib import Path
    secrets_dir = Path("/run/secrets")
    if secrets_dir.exists() and secrets_dir.is_dir():
        secret_files = list(secrets_dir.glob("*"))
        if secret_files:
            worker.log.info(f"Found {len(secret_files)} secrets in /run/secrets (using cached secrets)")
            return

    use_kv = os.environ.get("AZURE_USE_KEYVAULT", "false").lower() == "true"
    if not use_kv:
        worker.log.info("Skipping Azure Key Vault direct access (AZURE_USE_KEYVAULT=false)")
        return

    from azure.identity import DefaultAzureCredential
    from azure.keyvault.secrets import SecretClient

    vault_name = os.environ.get("AZURE_KEY_VAULT_NAME")
    if not vault_name:
        worker.log.error("AZURE_KEY_VAULT_NAME required when AZURE_USE_KEYVAULT=true")
        return

    vault_uri = f"https://{vault_name}.vault.azure.net"
    secret_client = SecretClient(vault_url=vault_uri, credential=DefaultAzureCredential())

    # Environment variable -> Key Vault secret name
    secret_mapping = {
        "FLASK_SECRET_KEY": os.environ.get("AZURE_SECRET_FLASK_SECRET_KEY", "flask-secret-key"),
        "AZURE_CLIENT_SECRET": os.environ.get("AZURE_SECRET_GRAPH_CLIENT_SECRET", "graph-client-secret"),
        "AUDIT_LOG_SIGNING_KEY": os.environ.get("AZURE_SECRET_AUDIT_LOG_SIGNING_KEY", "audit-log-signing-key"),
    }

    for env_name, secret_name in secret_mapping.items():
        if os.environ.get(env_name):
            continue
        secret_name = secret_name.strip()
        if not secret_name:
            continue
        try:
            secret = secret_client.get_secret(secret_name)
            os.environ[env_name] = secret.value
            worker.log.info(f"Loaded secret '{secret_name}' into {env_name}")
        except Exception as exc:
            worker.log.error(f"Failed to load secret '{secret_name}': {exc}")

    worker.log.info("Azure Key Vault secrets loaded")
