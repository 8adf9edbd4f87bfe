"""
Provider-agnostic chat-completion client for LifeQA.

Supports OpenAI, Anthropic, and Google Gemini behind one async interface
that reports token usage alongside the generated text.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from .protocols import ChatCompletion
from .schemas import ChatMessage

logger = logging.getLogger("lifeqa.common.llm_client")

PERSONAL_INSTRUCTIONS = (
    "You are a personal AI assistant with access to the user's health, location, "
    "voice, photo and note data. Use the context from the user's personal data "
    "to answer their question.\n\n"
    "Provide helpful, accurate answers based on this data. If the data doesn't contain "
    "enough information to answer the question, say so clearly."
)

CONTEXT_TEMPLATE = "Context from data:\n\n{context}"

# Gemini models are built per system instruction; keep the most recent few
GOOGLE_MODEL_CACHE_SIZE = 16


class LLMClient:
    """Unified chat-completion client across LLM providers."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout: float = 30.0,
    ) -> None:
        self.provider = (provider or "openai").lower()
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = None
        self._google_models: "OrderedDict[str, Any]" = OrderedDict()

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            import anthropic

            self._client = anthropic.AsyncAnthropic(api_key=anthropic_api_key)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=openai_api_key)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            import google.generativeai as genai

            genai.configure(api_key=google_api_key)
            self._client = genai  # Store the module, not a model instance
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, llm_config) -> "LLMClient":
        """Build a client from an LLMConfig"""
        return cls(
            provider=llm_config.provider,
            model=llm_config.model,
            anthropic_api_key=llm_config.anthropic_api_key,
            openai_api_key=llm_config.openai_api_key,
            google_api_key=llm_config.google_api_key,
            temperature=llm_config.temperature,
            max_tokens=llm_config.max_tokens,
            timeout=llm_config.timeout,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def complete(
        self,
        messages: List[ChatMessage],
        context: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> ChatCompletion:
        """Answer the conversation using context from personal data."""
        return await self._generate(messages, PERSONAL_INSTRUCTIONS, context, meta)

    async def complete_with_system_prompt(
        self,
        messages: List[ChatMessage],
        context: str,
        system_prompt: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> ChatCompletion:
        """Answer the conversation under a caller-supplied system prompt."""
        return await self._generate(messages, system_prompt, context, meta)

    async def _generate(
        self,
        messages: List[ChatMessage],
        instructions: str,
        context: str,
        meta: Optional[Dict[str, Any]],
    ) -> ChatCompletion:
        """
        One completion call.

        OpenAI takes system turns inline, so history is sent as given.
        Anthropic and Gemini accept a single system instruction; system
        turns from history are appended to it in order.
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if meta:
            logger.debug("Chat completion for %s", meta.get("endpoint", "unknown"))

        context_block = CONTEXT_TEMPLATE.format(context=context)
        history_system = [m.content for m in messages if m.role == "system"]
        turns = [m.to_provider_message() for m in messages if m.role != "system"]

        if self.provider == "openai":
            system = f"{instructions}\n\n{context_block}"
            response = await self._client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "system", "content": system}]
                + [m.to_provider_message() for m in messages],
                timeout=self.timeout,
            )
            usage = response.usage
            return ChatCompletion(
                text=(response.choices[0].message.content or "").strip(),
                model=response.model or self.model,
                input_tokens=usage.prompt_tokens if usage else 0,
                output_tokens=usage.completion_tokens if usage else 0,
            )

        if self.provider == "anthropic":
            system = "\n\n".join([instructions, context_block] + history_system)
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system,
                messages=turns,
                timeout=self.timeout,
            )
            return ChatCompletion(
                text=response.content[0].text.strip(),
                model=response.model or self.model,
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            )

        if self.provider == "google":
            # Per-query context travels as content so the model cache stays keyed
            # on the instructions alone
            model = self._google_model("\n\n".join([instructions] + history_system))
            contents = [
                {"role": "model" if t["role"] == "assistant" else "user", "parts": [t["content"]]}
                for t in turns
            ]
            if contents and contents[0]["role"] == "user":
                contents[0]["parts"].insert(0, context_block)
            else:
                contents.insert(0, {"role": "user", "parts": [context_block]})

            response = await model.generate_content_async(
                contents,
                generation_config={
                    "max_output_tokens": self.max_tokens,
                    "temperature": self.temperature,
                },
                request_options={"timeout": self.timeout},
            )
            usage = getattr(response, "usage_metadata", None)
            return ChatCompletion(
                text=response.text.strip(),
                model=self.model,
                input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
                output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
            )

        raise RuntimeError(f"Unsupported LLM provider: {self.provider}")

    def _google_model(self, system_instruction: str):
        """GenerativeModel for a system instruction, least recently used evicted"""
        model = self._google_models.get(system_instruction)
        if model is not None:
            self._google_models.move_to_end(system_instruction)
            return model

        model = self._client.GenerativeModel(
            model_name=self.model,
            system_instruction=system_instruction,
        )
        self._google_models[system_instruction] = model
        if len(self._google_models) > GOOGLE_MODEL_CACHE_SIZE:
            self._google_models.popitem(last=False)
        return model
