"""Conversation state machine and the prompts it sends."""

from .machine import ConversationMachine, MachineState, TurnResult

__all__ = ["ConversationMachine", "MachineState", "TurnResult"]
