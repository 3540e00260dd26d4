"""
Upstream credential resolution.
"""

from typing import Optional

from shared.config import TrafficCacheSettings
from shared.errors import MissingCredentialsError
from shared.logging import get_logger
from shared.secrets_manager import SecretsManager


class CredentialResolver:
    """Resolves the upstream API key: explicit setting first, then the secret reference."""

    def __init__(self, settings: TrafficCacheSettings, secrets: Optional[SecretsManager] = None):
        self.settings = settings
        self.secrets = secrets or SecretsManager(
            master_key=settings.secrets_master_key,
            secrets_file=settings.secrets_file,
        )
        self.logger = get_logger("traffic.credentials")

    async def resolve(self, provider: str) -> str:
        """Return the API key for ``provider`` or raise ``MissingCredentialsError``."""
        key = self.settings.upstream_api_key
        if key:
            return key

        ref = self.settings.upstream_secret_ref
        if ref:
            try:
                key = self.secrets.get_secret(ref)
            except Exception as e:
                self.logger.warning("Secret lookup failed", provider=provider, secret_ref=ref, error=str(e))
                raise MissingCredentialsError(provider, f"secret lookup failed: {e}") from e
            if key:
                return key
            self.logger.warning("Secret reference did not resolve", provider=provider, secret_ref=ref)

        raise MissingCredentialsError(provider)
