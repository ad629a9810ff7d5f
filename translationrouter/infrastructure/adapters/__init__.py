"""Provider adapter implementations."""

from translationrouter.infrastructure.adapters.azure_adapter import AzureTranslatorAdapter
from translationrouter.infrastructure.adapters.deepl_adapter import DeepLAdapter
from translationrouter.infrastructure.adapters.http_adapter import HttpProviderAdapter

__all__ = ["HttpProviderAdapter", "DeepLAdapter", "AzureTranslatorAdapter"]
