"""LLM factory for multi-provider support."""

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage

from portion_api.core.config import LLMProvider, Settings


def get_llm(settings: Settings) -> BaseChatModel:
    """
    Get configured LLM instance based on settings.

    Supports OpenAI and Google Gemini providers. Both accept image parts,
    so the same model serves food identification and density estimation.

    Args:
        settings: Application settings

    Returns:
        Configured chat model instance

    Raises:
        ValueError: If provider is not configured or unsupported
    """
    match settings.llm_provider:
        case LLMProvider.GEMINI:
            return _get_gemini(settings)
        case LLMProvider.OPENAI:
            return _get_openai(settings)
        case _:
            raise ValueError(f"Unsupported LLM provider: {settings.llm_provider}")


def _get_openai(settings: Settings) -> BaseChatModel:
    """Get OpenAI chat model."""
    from langchain_openai import ChatOpenAI

    if not settings.openai_api_key:
        raise ValueError(
            "OpenAI API key not configured. "
            "Set OPENAI_API_KEY in your .env file."
        )

    return ChatOpenAI(
        model=settings.openai_model,
        api_key=settings.openai_api_key,
        temperature=settings.llm_temperature,
        timeout=settings.llm_timeout,
        max_retries=0,
    )


def _get_gemini(settings: Settings) -> BaseChatModel:
    """Get Google Gemini chat model."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    if not settings.google_api_key:
        raise ValueError(
            "Google API key not configured. "
            "Set GOOGLE_API_KEY in your .env file."
        )

    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=settings.google_api_key,
        temperature=settings.llm_temperature,
        timeout=settings.llm_timeout,
        max_retries=0,
    )


def message_text(message: BaseMessage) -> str:
    """
    Extract the plain text of a chat model reply.

    Providers return either a string or a list of content parts.
    """
    content = message.content
    if isinstance(content, str):
        return content

    parts = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


def get_llm_info(settings: Settings) -> dict:
    """
    Get information about the configured LLM.

    Args:
        settings: Application settings

    Returns:
        Dict with provider info
    """
    return {
        "provider": settings.llm_provider.value,
        "model": (
            settings.gemini_model
            if settings.llm_provider == LLMProvider.GEMINI
            else settings.openai_model
        ),
        "configured": settings.is_llm_configured,
        "temperature": settings.llm_temperature,
    }
