"""Credential resolvers.

Secrets are never part of the pool configuration; ``credential_ref`` names
where to find them. The environment resolver is the default.
"""

import os

from translationrouter.domain.interfaces.credential_resolver import (
    CredentialResolutionError,
    CredentialResolver,
)
from translationrouter.domain.models.provider_key import ProviderKey


class EnvironmentCredentialResolver(CredentialResolver):
    """Reads the secret from the environment variable named by ``credential_ref``.

    When a key has no ``credential_ref`` the variable name is derived from
    the key id: ``deepl-free-1`` -> ``TRANSLATIONROUTER_KEY_DEEPL_FREE_1``.
    """

    def __init__(self, prefix: str = "TRANSLATIONROUTER_KEY_") -> None:
        self._prefix = prefix

    def variable_name(self, key: ProviderKey) -> str:
        if key.credential_ref:
            return key.credential_ref
        normalized = "".join(c if c.isalnum() else "_" for c in key.key_id).upper()
        return f"{self._prefix}{normalized}"

    def resolve(self, key: ProviderKey) -> str:
        name = self.variable_name(key)
        value = os.getenv(name)
        if not value or not value.strip():
            raise CredentialResolutionError(
                f"Credential for key '{key.key_id}' not found in environment variable {name}"
            )
        return value.strip()


class StaticCredentialResolver(CredentialResolver):
    """Resolves credentials from an in-memory mapping of ref (or key_id) to secret."""

    def __init__(self, secrets: dict[str, str]) -> None:
        self._secrets = dict(secrets)

    def resolve(self, key: ProviderKey) -> str:
        ref = key.credential_ref or key.key_id
        secret = self._secrets.get(ref)
        if not secret:
            raise CredentialResolutionError(f"No credential registered for key '{key.key_id}'")
        return secret
