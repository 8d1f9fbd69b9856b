"""Factory for creating BatchProcessor instances."""

from openai import OpenAI
from config import Config
from llm.providers.base import BatchProcessor
from llm.providers.openai import OpenAIBatchProcessor
from logger import get_logger

logger = get_logger()


def get_batch_processor(config: Config, services) -> BatchProcessor:
    """Create the batch processor selected in configuration.

    Args:
        config: Application configuration.
        services: Services container; the processor uses its batch store.

    Returns:
        BatchProcessor instance.

    Raises:
        ValueError: If no provider is configured, the provider is unknown,
            or its settings are incomplete.
    """
    provider_name = config.llm_provider or None

    if provider_name == "openai":
        api_key = config.openai_api_key
        if not api_key:
            raise ValueError(
                "OpenAI provider selected but neither llm.openai_api_key "
                "nor OPENAI_API_KEY is set"
            )

        logger.info(
            f"Initializing OpenAI batch processor (model: {config.llm_openai_model or 'default'}, "
            f"completion window: {config.llm_completion_window})"
        )

        client = OpenAI(
            api_key=api_key,
            timeout=config.llm_openai_timeout_seconds,
            max_retries=config.llm_openai_max_retries,
        )
        return OpenAIBatchProcessor(
            services.batches,
            client,
            model=config.llm_openai_model,
            completion_window=config.llm_completion_window,
        )

    elif provider_name is None:
        raise ValueError("No batch processor configured (set llm.provider)")

    else:
        raise ValueError(f"Unknown batch processor provider: {provider_name}")
