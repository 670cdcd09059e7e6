"""Scenecraft: interview and generation engine for a screenwriting assistant panel."""

from .config import ScenecraftConfig, load_config
from .contracts import (
    ChatMessage,
    DocumentContext,
    EntityKind,
    EntityPayload,
    GenerationJob,
    GenerationKind,
    InterviewSession,
    JobStatus,
    Mode,
    ModeSession,
    ParseResult,
)
from .conversation import ConversationMachine, MachineState
from .insertion import InsertionBridge
from .jobs import GenerationJobOrchestrator
from .parsing import parse
from .registry import REGISTRY, get_workflow, next_question
from .session import ModeEntry, ModeSessionController, SubmitOutcome

__version__ = "0.1.0"
__all__ = [
    "ChatMessage",
    "ConversationMachine",
    "DocumentContext",
    "EntityKind",
    "EntityPayload",
    "GenerationJob",
    "GenerationJobOrchestrator",
    "GenerationKind",
    "InsertionBridge",
    "InterviewSession",
    "JobStatus",
    "MachineState",
    "Mode",
    "ModeEntry",
    "ModeSession",
    "ModeSessionController",
    "ParseResult",
    "REGISTRY",
    "ScenecraftConfig",
    "SubmitOutcome",
    "get_workflow",
    "load_config",
    "next_question",
    "parse",
]
