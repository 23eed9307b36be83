"""LLM helpers."""

from .llm import get_llm, get_llm_info, message_text

__all__ = ["get_llm", "get_llm_info", "message_text"]
