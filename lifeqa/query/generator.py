"""
Response Generator

One chat-completion call per query. History is passed through as given,
followed by the new user turn. Circle queries add a system instruction
naming the circle; personal queries rely on the context alone.
"""

import logging
import time
from typing import List, Optional, Sequence

from ..common.errors import call_dependency
from ..common.pricing import estimate_cost
from ..common.protocols import ChatCompletionProtocol
from ..common.schemas import (
    AnswerResult,
    ChatMessage,
    Circle,
    ContextReference,
    ProviderInfo,
    RetrievedFragment,
)

logger = logging.getLogger("lifeqa.query.generator")

CIRCLE_SYSTEM_PROMPT_TEMPLATE = (
    'You are analyzing data for a friend circle called "{name}" with {members} members.\n'
    "When referencing data, mention which member it's from by name.\n"
    "Be conversational and friendly - this is a private circle of close friends.\n"
    "Respect the data sharing settings - only data types enabled for this circle are included."
)


def circle_system_prompt(circle: Circle) -> str:
    return CIRCLE_SYSTEM_PROMPT_TEMPLATE.format(name=circle.name, members=len(circle.member_ids))


def build_messages(text: str, history: Optional[Sequence[ChatMessage]] = None) -> List[ChatMessage]:
    """Prior turns unchanged, then the new user turn"""
    return list(history or []) + [ChatMessage(role="user", content=text)]


class ResponseGenerator:
    """Prompt assembly, the completion call and its accounting"""

    def __init__(self, chat_service: ChatCompletionProtocol):
        self.chat_service = chat_service

    @property
    def provider_id(self) -> str:
        return getattr(self.chat_service, "provider", None) or "unknown"

    async def generate(
        self,
        text: str,
        context: str,
        fragments: Sequence[RetrievedFragment],
        history: Optional[Sequence[ChatMessage]] = None,
        circle: Optional[Circle] = None,
        meta: Optional[dict] = None,
    ) -> AnswerResult:
        """
        Answer the query from the built context.

        Args:
            text: The new user turn
            context: Output of the context builder
            fragments: Fragments the context was built from, in rank order
            history: Prior conversation turns
            circle: Set for circle queries; adds the circle system prompt
              and owner attribution on context references
            meta: Passed through to the chat service

        Returns:
            AnswerResult with provider accounting for the single call
        """
        messages = build_messages(text, history)

        started = time.perf_counter()
        if circle is not None:
            completion = await call_dependency(
                "chat_completion",
                self.chat_service.complete_with_system_prompt(
                    messages, context, circle_system_prompt(circle), meta,
                ),
            )
        else:
            completion = await call_dependency(
                "chat_completion",
                self.chat_service.complete(messages, context, meta),
            )
        latency_ms = int((time.perf_counter() - started) * 1000)

        provider_info = ProviderInfo(
            provider_id=self.provider_id,
            model=completion.model,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            latency_ms=latency_ms,
            estimated_cost_usd=estimate_cost(
                completion.model, completion.input_tokens, completion.output_tokens,
            ),
        )

        attribute = circle is not None
        return AnswerResult(
            response_text=completion.text,
            context_used=[ContextReference.from_fragment(f, attribute=attribute) for f in fragments],
            provider_info=provider_info,
        )
