"""Selection of the receipt classifier named by the configuration."""

import logging

from taxease.classification.base import ReceiptClassifier
from taxease.classification.ollama_provider import OllamaReceiptClassifier
from taxease.classification.openai_provider import OpenAIReceiptClassifier
from taxease.shared.config import Settings

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, type[ReceiptClassifier]] = {
    "openai": OpenAIReceiptClassifier,
    "ollama": OllamaReceiptClassifier,
}


def provider_class(name: str) -> type[ReceiptClassifier]:
    """Look up a classifier class by provider name.

    Raises:
        ValueError: If no provider has that name
    """
    try:
        return PROVIDERS[name]
    except KeyError:
        available = ", ".join(PROVIDERS)
        raise ValueError(
            f"Unknown classification provider: '{name}'. Available providers: {available}"
        ) from None


def create_classifier(settings: Settings) -> ReceiptClassifier:
    """Build the classifier for ``settings.classification_provider``.

    An unavailable provider (missing API key, unreachable server) is still
    returned; each receipt it handles then fails on its own.
    """
    name = settings.classification_provider
    classifier = provider_class(name)(settings)

    if not classifier.is_available():
        logger.warning(
            f"Classification provider '{name}' is not fully available. "
            f"Check configuration (e.g., API keys, server URL, model)."
        )

    logger.info(f"Created classification provider: {name}")
    return classifier
