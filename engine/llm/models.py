"""Centralized LLM model management.

This module provides a single point of access for the chat models used by the
assistant (intent extraction, identity mapping and response composition).
Models are instantiated once and reused to avoid redundant initialization.

Usage:
    from engine.llm.models import ModelManager

    if ModelManager.is_configured():
        model = ModelManager.get_chat_model()
"""

from typing import Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_groq import ChatGroq
from langchain_ollama import ChatOllama

from app.settings import settings


class ModelManager:
    """Singleton-like manager for LLM model instances.

    The provider is picked by ``settings.LLM_PROVIDER``; a provider without
    credentials counts as not configured and callers fall back to their
    deterministic path.
    """

    _gemini_instance: Optional[ChatGoogleGenerativeAI] = None
    _groq_instance: Optional[ChatGroq] = None
    _ollama_instance: Optional[ChatOllama] = None

    @classmethod
    def get_gemini(cls, model: Optional[str] = None) -> ChatGoogleGenerativeAI:
        """Get or create Gemini model instance.

        Args:
            model: Model name. Defaults to settings.GEMINI_MODEL

        Returns:
            ChatGoogleGenerativeAI instance
        """
        if cls._gemini_instance is None:
            cls._gemini_instance = ChatGoogleGenerativeAI(
                model=model or settings.GEMINI_MODEL,
                google_api_key=settings.GOOGLE_API_KEY,
                temperature=settings.LLM_TEMPERATURE,
                timeout=settings.LLM_TIMEOUT,
            )
        return cls._gemini_instance

    @classmethod
    def get_groq(cls, model: Optional[str] = None) -> ChatGroq:
        """Get or create Groq model instance.

        Args:
            model: Model name. Defaults to settings.GROQ_MODEL

        Returns:
            ChatGroq instance
        """
        if cls._groq_instance is None:
            cls._groq_instance = ChatGroq(
                model=model or settings.GROQ_MODEL,
                api_key=settings.GROQ_API_KEY,
                temperature=settings.LLM_TEMPERATURE,
                timeout=settings.LLM_TIMEOUT,
            )
        return cls._groq_instance

    @classmethod
    def get_ollama(cls, model: Optional[str] = None) -> ChatOllama:
        """Get or create Ollama model instance."""
        if cls._ollama_instance is None:
            cls._ollama_instance = ChatOllama(
                model=model or settings.OLLAMA_MODEL,
                base_url=settings.OLLAMA_BASE_URL,
                temperature=settings.LLM_TEMPERATURE,
            )
        return cls._ollama_instance

    @classmethod
    def is_configured(cls) -> bool:
        provider = settings.LLM_PROVIDER.lower()
        if provider == "groq":
            return bool(settings.GROQ_API_KEY)
        if provider == "gemini":
            return bool(settings.GOOGLE_API_KEY)
        if provider == "ollama":
            return bool(settings.OLLAMA_BASE_URL)
        return False

    @classmethod
    def get_chat_model(cls) -> Optional[BaseChatModel]:
        """Get the configured chat model, or None when no provider is set up."""
        if not cls.is_configured():
            return None
        provider = settings.LLM_PROVIDER.lower()
        if provider == "gemini":
            return cls.get_gemini()
        if provider == "ollama":
            return cls.get_ollama()
        return cls.get_groq()

    @classmethod
    def reset(cls) -> None:
        """Reset all model instances (useful for testing)."""
        cls._gemini_instance = None
        cls._groq_instance = None
        cls._ollama_instance = None
