"""
Configuration Management for LifeQA

Loads configuration from ~/.lifeqa/config.json and environment variables.
The resulting EngineConfig is handed to QueryEngine explicitly.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("lifeqa.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".lifeqa"
CONFIG_PATH = CONFIG_DIR / "config.json"


@dataclass
class EmbeddingConfig:
    """Embedding model configuration"""
    provider: str = "openai"
    model: str = "text-embedding-3-small"
    dimensions: int = 1024
    api_key: str = ""


@dataclass
class LLMConfig:
    """Chat-completion provider configuration"""
    provider: str = "openai"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"
    temperature: float = 0.7
    max_tokens: int = 500
    timeout: float = 30.0

    @property
    def model(self) -> str:
        """Model for the selected provider"""
        return {
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
            "google": self.google_model,
        }.get(self.provider, "")

    @property
    def api_key(self) -> str:
        """API key for the selected provider"""
        return {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
            "google": self.google_api_key,
        }.get(self.provider, "")


@dataclass
class RetrievalConfig:
    """Fan-out sizes for the vector and event stores"""
    top_k: int = 10
    top_k_count_query: int = 50  # counting needs recall over precision
    top_k_circle: int = 20
    top_k_activity: int = 20
    event_limit: int = 50


@dataclass
class ContextConfig:
    """Context assembly limits"""
    max_length: int = 8000
    truncation_marker: str = "\n...[context truncated]"


@dataclass
class EngineConfig:
    """Main LifeQA configuration"""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        provider=embedding_data.get("provider", "openai"),
        model=embedding_data.get("model", "text-embedding-3-small"),
        dimensions=embedding_data.get("dimensions", 1024),
        api_key=embedding_data.get("api_key", ""),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "openai"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash"),
        temperature=llm_data.get("temperature", 0.7),
        max_tokens=llm_data.get("max_tokens", 500),
        timeout=llm_data.get("timeout", 30.0),
    )


def _parse_retrieval_config(data: dict) -> RetrievalConfig:
    """Parse retrieval section from config dict"""
    retrieval_data = data.get("retrieval", {})
    return RetrievalConfig(
        top_k=retrieval_data.get("top_k", 10),
        top_k_count_query=retrieval_data.get("top_k_count_query", 50),
        top_k_circle=retrieval_data.get("top_k_circle", 20),
        top_k_activity=retrieval_data.get("top_k_activity", 20),
        event_limit=retrieval_data.get("event_limit", 50),
    )


def _parse_context_config(data: dict) -> ContextConfig:
    """Parse context section from config dict"""
    context_data = data.get("context", {})
    return ContextConfig(
        max_length=context_data.get("max_length", 8000),
        truncation_marker=context_data.get("truncation_marker", "\n...[context truncated]"),
    )


def load_config() -> EngineConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.lifeqa/config.json)
    3. Default values
    """
    config = EngineConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.embedding = _parse_embedding_config(data)
            config.llm = _parse_llm_config(data)
            config.retrieval = _parse_retrieval_config(data)
            config.context = _parse_context_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    if os.getenv("LIFEQA_EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("LIFEQA_EMBEDDING_MODEL")
    if os.getenv("LIFEQA_CONTEXT_MAX_LENGTH"):
        config.context.max_length = int(os.getenv("LIFEQA_CONTEXT_MAX_LENGTH"))
    if os.getenv("LIFEQA_TOP_K"):
        config.retrieval.top_k = int(os.getenv("LIFEQA_TOP_K"))
    if os.getenv("LIFEQA_TOP_K_COUNT"):
        config.retrieval.top_k_count_query = int(os.getenv("LIFEQA_TOP_K_COUNT"))

    # LLM env var overrides (track env-sourced keys so they are never saved)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "OPENAI_API_KEY": "openai_api_key",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "LIFEQA_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("LIFEQA_LLM_MODEL"):
        model_attr = f"{config.llm.provider}_model"
        if hasattr(config.llm, model_attr):
            setattr(config.llm, model_attr, os.getenv("LIFEQA_LLM_MODEL"))

    # Embeddings reuse the OpenAI key unless one is set explicitly
    if not config.embedding.api_key and config.llm.openai_api_key:
        config.embedding.api_key = config.llm.openai_api_key
        if "openai_api_key" in config._env_sourced_keys:
            config._env_sourced_keys.add("embedding_api_key")

    return config


def save_config(config: EngineConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "temperature": config.llm.temperature,
        "max_tokens": config.llm.max_tokens,
        "timeout": config.llm.timeout,
    }
    for key in ("anthropic_api_key", "openai_api_key", "google_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "embedding": {
            "provider": config.embedding.provider,
            "model": config.embedding.model,
            "dimensions": config.embedding.dimensions,
            "api_key": "" if "embedding_api_key" in env_sourced else config.embedding.api_key,
        },
        "llm": llm_section,
        "retrieval": {
            "top_k": config.retrieval.top_k,
            "top_k_count_query": config.retrieval.top_k_count_query,
            "top_k_circle": config.retrieval.top_k_circle,
            "top_k_activity": config.retrieval.top_k_activity,
            "event_limit": config.retrieval.event_limit,
        },
        "context": {
            "max_length": config.context.max_length,
            "truncation_marker": config.context.truncation_marker,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
