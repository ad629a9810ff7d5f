"""CredentialResolver interface for turning credential references into secrets."""

from abc import ABC, abstractmethod

from translationrouter.domain.models.provider_key import ProviderKey


class CredentialResolutionError(Exception):
    """Raised when a ProviderKey's credential cannot be resolved."""

    pass


class CredentialResolver(ABC):
    """Resolves ``ProviderKey.credential_ref`` into the secret an adapter needs.

    Secrets are resolved on demand right before a provider call and are
    never stored on the ProviderKey or emitted in events.
    """

    @abstractmethod
    def resolve(self, key: ProviderKey) -> str:
        """Return the secret for ``key``.

        Raises:
            CredentialResolutionError: If the reference is missing or empty.
        """
        ...
