"""Text-generation collaborator backed by a pydantic-ai agent."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import httpx
from pydantic_ai import Agent, RunContext
from pydantic_ai.exceptions import AgentRunError, ModelHTTPError
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models import Model

from ..contracts import ChatMessage, Role
from ..errors import CollaboratorUnavailable, RateLimited
from .base import TextGenerator

logger = logging.getLogger(__name__)


def _turn_instructions(ctx: RunContext[Dict[str, Any]]) -> str:
    """Per-turn instructions supplied through the run deps."""
    return ctx.deps.get("instructions") or ""


def transcript_to_history(transcript: Sequence[ChatMessage]) -> List[ModelMessage]:
    """Map transcript entries to pydantic-ai message history.

    Error annotations and other system notices are not part of the dialogue and
    are left out.
    """
    history: List[ModelMessage] = []
    for message in transcript:
        if message.role is Role.USER:
            history.append(ModelRequest(parts=[UserPromptPart(content=message.text)]))
        elif message.role is Role.ASSISTANT:
            history.append(ModelResponse(parts=[TextPart(content=message.text)]))
    return history


class AgentTextGenerator(TextGenerator):
    """Delegate replies to a pydantic-ai ``Agent``."""

    def __init__(
        self,
        model: Union[str, Model, None] = None,
        instructions: Optional[str] = None,
        agent: Optional[Agent] = None,
    ) -> None:
        if agent is None:
            if model is None:
                raise ValueError("AgentTextGenerator needs a model or an agent")
            agent = Agent(model, deps_type=dict, instructions=instructions)
        agent.instructions(_turn_instructions)
        self._agent = agent

    async def generate(
        self, transcript: Sequence[ChatMessage], hints: Mapping[str, Any]
    ) -> str:
        messages = list(transcript)
        if messages and messages[-1].role is Role.USER:
            prompt = messages.pop().text
        else:
            prompt = hints.get("prompt") or "Continue."

        deps = dict(hints)
        try:
            result = await self._agent.run(
                prompt, message_history=transcript_to_history(messages), deps=deps
            )
        except ModelHTTPError as exc:
            if exc.status_code == 429:
                raise RateLimited(str(exc), collaborator=self.name) from exc
            raise CollaboratorUnavailable(str(exc), collaborator=self.name) from exc
        except (AgentRunError, httpx.HTTPError) as exc:
            logger.error(f"Text generation failed: {exc}")
            raise CollaboratorUnavailable(str(exc), collaborator=self.name) from exc
        return str(result.output)
