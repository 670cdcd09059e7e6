"""Conversation state machine driving general chat and entity interviews."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field

from ..config import InterviewConfig
from ..constants import DEFAULT_PLACEHOLDER
from ..contracts import (
    ChatMessage,
    DocumentContext,
    EntityKind,
    EntityPayload,
    FieldValue,
    FileRef,
    InterviewSession,
    InterviewStatus,
    ModeSession,
    MutationResult,
    Role,
)
from ..collaborators.base import TextGenerator
from ..errors import (
    CollaboratorError,
    InvalidTransition,
    ParseLowConfidence,
    SessionBusy,
)
from ..insertion import InsertionBridge
from ..parsing import ResponseParser, parse_profile
from ..registry import (
    REGISTRY,
    OrderedQuestion,
    WorkflowDefinition,
    WorkflowRegistry,
    detect_workflow_intent,
    is_screenplay_content,
    missing_required_fields,
    next_question,
    outstanding_fields,
)
from . import prompts

logger = logging.getLogger(__name__)


class MachineState(str, Enum):
    IDLE = "idle"
    AWAITING_USER_INPUT = "awaiting_user_input"
    PROCESSING_ASSISTANT_REPLY = "processing_assistant_reply"
    ADVANCING_QUESTION = "advancing_question"
    FINALIZING = "finalizing"
    REASKING = "reasking"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


_ACCEPTS_INPUT = (MachineState.IDLE, MachineState.AWAITING_USER_INPUT)


class TurnResult(BaseModel):
    """What one user turn produced."""

    user_message: ChatMessage
    messages: List[ChatMessage] = Field(default_factory=list)
    extracted: Dict[str, FieldValue] = Field(default_factory=dict)
    confidence: Optional[float] = None
    reasked: bool = False
    completed: Optional[EntityPayload] = None
    error: Optional[str] = None
    discarded: bool = False
    suggested_workflow: Optional[EntityKind] = None
    insertable: bool = False

    @property
    def reply(self) -> Optional[ChatMessage]:
        return next((m for m in self.messages if m.role is Role.ASSISTANT), None)


class ConversationMachine:
    """Owns the transcript-facing half of a ``ModeSession``.

    Collaborator calls are the only suspension points. Every call is tagged
    with the epoch it started in; cancelling or abandoning bumps the epoch so
    a reply that arrives afterwards is dropped instead of applied.
    """

    def __init__(
        self,
        session: ModeSession,
        text_generator: TextGenerator,
        bridge: InsertionBridge,
        *,
        registry: Optional[WorkflowRegistry] = None,
        parser: Optional[ResponseParser] = None,
        config: Optional[InterviewConfig] = None,
    ) -> None:
        self.session = session
        self._text = text_generator
        self._bridge = bridge
        self._registry = registry or REGISTRY
        self._parser = parser or ResponseParser()
        self._config = config or InterviewConfig()

        self._state = MachineState.IDLE
        self.transitions: List[Tuple[MachineState, MachineState]] = []
        self._epoch = 0
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

        self._workflow: Optional[WorkflowDefinition] = None
        self._answer_turns: List[List[str]] = []
        self._failed_turn: Optional[Tuple[ChatMessage, Dict[str, Any]]] = None
        self.pending_payload: Optional[EntityPayload] = None

    # -- inspection -----------------------------------------------------

    @property
    def state(self) -> MachineState:
        return self._state

    @property
    def interview(self) -> Optional[InterviewSession]:
        return self.session.active_interview

    @property
    def workflow(self) -> Optional[WorkflowDefinition]:
        return self._workflow if self.interview is not None else None

    @property
    def busy(self) -> bool:
        return self._state is MachineState.PROCESSING_ASSISTANT_REPLY

    @property
    def can_retry(self) -> bool:
        return self._failed_turn is not None

    @property
    def current_question(self) -> Optional[OrderedQuestion]:
        interview, workflow = self.interview, self.workflow
        if interview is None or workflow is None:
            return None
        if interview.current_question_index >= len(workflow.questions):
            return None
        return workflow.questions[interview.current_question_index]

    @property
    def input_placeholder(self) -> str:
        question = self.current_question
        if question is not None and question.placeholder:
            return question.placeholder
        return DEFAULT_PLACEHOLDER

    # -- internals ------------------------------------------------------

    def _transition(self, new_state: MachineState) -> None:
        old_state = self._state
        self._state = new_state
        self.transitions.append((old_state, new_state))
        logger.debug(f"Conversation {self.session.session_id}: {old_state.value} -> {new_state.value}")

    def _emit(
        self,
        role: Role,
        text: str,
        *,
        error: Optional[str] = None,
        attachments: Optional[Sequence[FileRef]] = None,
        tagged: bool = True,
    ) -> ChatMessage:
        workflow = self.workflow
        message = ChatMessage(
            role=role,
            text=text,
            error=error,
            attachments=list(attachments or []),
            workflow_tag=workflow.id if (tagged and workflow is not None) else None,
            mode=self.session.active_mode,
        )
        return self.session.append(message)

    def _dialogue(self) -> List[ChatMessage]:
        """Transcript without error notices, as handed to the text generator."""
        return [m for m in self.session.transcript if m.error is None]

    async def _generate(self, hints: Mapping[str, Any]) -> str:
        self._in_flight += 1
        self._idle.clear()
        try:
            call = self._text.generate(self._dialogue(), hints)
            if self._config.reply_timeout:
                return await asyncio.wait_for(call, self._config.reply_timeout)
            return await call
        finally:
            self._in_flight -= 1
            if not self._in_flight:
                self._idle.set()

    def _is_stale(self, epoch: int, interview: Optional[InterviewSession]) -> bool:
        return epoch != self._epoch or self.interview is not interview

    def _ask(self, question: OrderedQuestion) -> ChatMessage:
        self.interview.current_question_index = question.index
        self._transition(MachineState.AWAITING_USER_INPUT)
        return self._emit(Role.ASSISTANT, question.prompt)

    # -- workflow lifecycle ---------------------------------------------

    def start_workflow(
        self, entity_kind: Union[EntityKind, str], confirm_discard: bool = False
    ) -> ChatMessage:
        """Begin an interview and emit its first question.

        Raises:
            WorkflowNotFound: No workflow is registered for ``entity_kind``.
            SessionBusy: Another interview is active and ``confirm_discard`` is False.
            InvalidTransition: A reply is in flight and ``confirm_discard`` is False.
        """
        workflow = self._registry.get(entity_kind)

        current = self.interview
        if current is not None and not current.is_terminal:
            if not confirm_discard:
                raise SessionBusy(
                    f"A {current.entity_kind.value} interview is in progress; confirm discarding it first"
                )
            self.cancel_workflow()
        elif self.busy:
            if not confirm_discard:
                raise InvalidTransition("A reply is still being generated")
            self.abandon()

        # definitions hold at least one question and skip rules need an answer
        first = next_question(workflow, {})
        interview = InterviewSession(workflow_id=workflow.id, entity_kind=workflow.entity_kind)
        self.session.active_interview = interview
        self._workflow = workflow
        self._answer_turns = []
        self._failed_turn = None
        logger.info(f"Started {workflow.id} in session {self.session.session_id}")
        return self._ask(first)

    def cancel_workflow(self) -> bool:
        """Discard the active interview. Transcript entries are kept."""
        interview = self.interview
        if interview is None or interview.is_terminal:
            return False
        workflow = self._workflow
        interview.status = InterviewStatus.CANCELLED
        self._emit(Role.SYSTEM, f"{workflow.entity_kind.value.capitalize()} interview cancelled.")
        self.session.active_interview = None
        self._workflow = None
        self._answer_turns = []
        self._failed_turn = None
        self._epoch += 1
        self._transition(MachineState.CANCELLED)
        self._transition(MachineState.IDLE)
        logger.info(f"Cancelled {workflow.id} in session {self.session.session_id}")
        return True

    def abandon(self) -> None:
        """Stop waiting for an in-flight reply; it is dropped when it arrives."""
        self._epoch += 1
        if self.busy:
            logger.warning(f"Abandoning in-flight reply in session {self.session.session_id}")
            resting = (
                MachineState.AWAITING_USER_INPUT
                if self.interview is not None
                else MachineState.IDLE
            )
            self._transition(resting)

    async def wait_idle(self) -> None:
        """Wait until no text-generation call is in flight."""
        await self._idle.wait()

    def rewind(self) -> ChatMessage:
        """Drop the answers recorded by the last answering turn and ask again."""
        interview = self.interview
        if interview is None or self._state is not MachineState.AWAITING_USER_INPUT:
            raise InvalidTransition("Rewind needs an interview waiting for input")
        if not self._answer_turns:
            raise InvalidTransition("Nothing to rewind")

        dropped = self._answer_turns.pop()
        interview.answers = {k: v for k, v in interview.answers.items() if k not in dropped}
        logger.info(f"Rewound {self._workflow.id}: cleared {dropped}")
        return self._ask(next_question(self._workflow, interview.answers))

    # -- turns ----------------------------------------------------------

    async def submit_user_turn(
        self,
        text: str,
        attachments: Optional[Sequence[FileRef]] = None,
        hints: Optional[Mapping[str, Any]] = None,
    ) -> TurnResult:
        """Record a user message and produce the assistant's side of the turn.

        Without an active interview the text goes to general chat. During an
        interview the reply is parsed into answers and the next question asked.

        Raises:
            InvalidTransition: A previous reply is still being processed.
        """
        if self._state not in _ACCEPTS_INPUT:
            raise InvalidTransition(f"Cannot accept input while {self._state.value}")
        user_message = self._emit(Role.USER, text, attachments=attachments)
        self._failed_turn = None
        return await self._run_turn(user_message, dict(hints or {}))

    async def retry_turn(self) -> TurnResult:
        """Re-run the last failed turn without recording the user message twice."""
        if self._failed_turn is None:
            raise InvalidTransition("There is no failed turn to retry")
        if self._state not in _ACCEPTS_INPUT:
            raise InvalidTransition(f"Cannot retry while {self._state.value}")
        user_message, hints = self._failed_turn
        self._failed_turn = None
        return await self._run_turn(user_message, hints)

    async def _run_turn(self, user_message: ChatMessage, hints: Dict[str, Any]) -> TurnResult:
        if self.interview is None:
            return await self._chat_turn(user_message, hints)
        return await self._interview_turn(user_message, hints)

    def _fail(
        self,
        user_message: ChatMessage,
        hints: Dict[str, Any],
        exc: BaseException,
        resting: MachineState,
    ) -> TurnResult:
        detail = str(exc) or type(exc).__name__
        logger.error(f"Text generation failed in session {self.session.session_id}: {detail}")
        self._failed_turn = (user_message, hints)
        notice = self._emit(Role.SYSTEM, prompts.failure_message(), error=detail)
        self._transition(resting)
        return TurnResult(user_message=user_message, messages=[notice], error=detail)

    async def _chat_turn(self, user_message: ChatMessage, hints: Dict[str, Any]) -> TurnResult:
        epoch = self._epoch
        self._transition(MachineState.PROCESSING_ASSISTANT_REPLY)
        try:
            text = await self._generate({"purpose": "chat", **hints})
        except (CollaboratorError, TimeoutError) as exc:
            if self._is_stale(epoch, None):
                return TurnResult(user_message=user_message, discarded=True)
            return self._fail(user_message, hints, exc, MachineState.IDLE)

        if self._is_stale(epoch, None):
            logger.warning(f"Discarding stale chat reply in session {self.session.session_id}")
            return TurnResult(user_message=user_message, discarded=True)

        reply = self._emit(Role.ASSISTANT, text)
        self._transition(MachineState.IDLE)
        return TurnResult(
            user_message=user_message,
            messages=[reply],
            suggested_workflow=detect_workflow_intent(user_message.text),
            insertable=is_screenplay_content(text),
        )

    async def _interview_turn(self, user_message: ChatMessage, hints: Dict[str, Any]) -> TurnResult:
        interview, workflow = self.interview, self._workflow
        question = self.current_question
        outstanding = outstanding_fields(workflow, interview.answers)
        epoch = self._epoch

        self._transition(MachineState.PROCESSING_ASSISTANT_REPLY)
        request = {
            **hints,
            "purpose": "interview",
            "workflow_id": workflow.id,
            "entity_kind": workflow.entity_kind.value,
            "question": question.prompt,
            "target_field": question.target_field,
            "target_label": workflow.field(question.target_field).display_label,
            "outstanding": [spec.name for spec in outstanding],
            "instructions": prompts.interview_instructions(workflow, question, outstanding),
        }
        try:
            text = await self._generate(request)
        except (CollaboratorError, TimeoutError) as exc:
            if self._is_stale(epoch, interview):
                return TurnResult(user_message=user_message, discarded=True)
            return self._fail(user_message, hints, exc, MachineState.AWAITING_USER_INPUT)

        if self._is_stale(epoch, interview):
            logger.warning(f"Discarding reply for abandoned {workflow.id} turn")
            return TurnResult(user_message=user_message, discarded=True)

        reply = self._emit(Role.ASSISTANT, text)
        messages = [reply]
        result = self._parser.parse(
            text, outstanding, asked_field=question.target_field, answered=interview.answers.keys()
        )

        try:
            result.require_usable(self._config.no_answer_floor)
        except ParseLowConfidence as exc:
            if question.required:
                logger.info(f"{workflow.id} q{question.index}: {exc}; asking again")
                self._transition(MachineState.REASKING)
                messages.append(self._ask(question))
                return TurnResult(
                    user_message=user_message,
                    messages=messages,
                    confidence=result.confidence,
                    reasked=True,
                )
            logger.info(f"{workflow.id} q{question.index}: no answer, skipping optional field")
            extracted: Dict[str, FieldValue] = {question.target_field: None}
        else:
            extracted = dict(result.extracted_fields)
            if result.confidence < self._config.clarify_threshold:
                messages.append(
                    self._emit(Role.ASSISTANT, prompts.confirmation_message(workflow, extracted))
                )

        interview.answers = {**interview.answers, **extracted}
        self._answer_turns.append(list(extracted))
        self._transition(MachineState.ADVANCING_QUESTION)

        payload = None
        upcoming = next_question(workflow, interview.answers)
        if upcoming is not None:
            messages.append(self._ask(upcoming))
        else:
            payload = await self._finalize(interview, workflow, epoch, messages)

        return TurnResult(
            user_message=user_message,
            messages=messages,
            extracted=extracted,
            confidence=result.confidence,
            completed=payload,
            discarded=payload is None and self._is_stale(epoch, interview),
        )

    async def _finalize(
        self,
        interview: InterviewSession,
        workflow: WorkflowDefinition,
        epoch: int,
        messages: List[ChatMessage],
    ) -> Optional[EntityPayload]:
        self._transition(MachineState.FINALIZING)
        missing = missing_required_fields(workflow, interview.answers)
        if missing:
            logger.warning(f"{workflow.id} reached finalizing with {missing} missing")
            messages.append(self._ask(workflow.question_for(missing[0])))
            return None

        payload = EntityPayload(
            kind=workflow.entity_kind,
            workflow_id=workflow.id,
            fields=dict(interview.answers),
        )
        if self._config.draft_profile and workflow.profile_prompt:
            await self._draft_profile(payload, workflow, messages)
            if self._is_stale(epoch, interview):
                logger.warning(f"Discarding profile for abandoned {workflow.id}")
                return None

        interview.current_question_index = len(workflow.questions)
        interview.status = InterviewStatus.COMPLETED
        self._transition(MachineState.COMPLETED)
        messages.append(
            self._emit(Role.ASSISTANT, prompts.completion_message(workflow, payload.fields))
        )
        self.pending_payload = payload
        self.session.active_interview = None
        self._workflow = None
        self._answer_turns = []
        self._transition(MachineState.IDLE)
        logger.info(f"Completed {workflow.id} as entity {payload.entity_id}")
        return payload

    async def _draft_profile(
        self,
        payload: EntityPayload,
        workflow: WorkflowDefinition,
        messages: List[ChatMessage],
    ) -> None:
        hints = {
            "purpose": "profile",
            "workflow_id": workflow.id,
            "entity_kind": workflow.entity_kind.value,
            "instructions": workflow.profile_prompt,
            "prompt": prompts.profile_request(workflow),
            "answers": dict(payload.fields),
        }
        try:
            text = await self._generate(hints)
        except (CollaboratorError, TimeoutError) as exc:
            detail = str(exc) or type(exc).__name__
            logger.error(f"Profile drafting for {workflow.id} failed: {detail}")
            messages.append(
                self._emit(
                    Role.SYSTEM,
                    "The profile could not be drafted; the interview answers are kept as they are.",
                    error=detail,
                )
            )
            return
        parsed = parse_profile(text, workflow)
        payload.profile = parsed.extracted_fields or None
        payload.profile_text = text
        messages.append(self._emit(Role.ASSISTANT, text))

    # -- insertion gate -------------------------------------------------

    async def confirm_insertion(self, document_context: DocumentContext) -> MutationResult:
        """Apply the completed entity after the user approved it.

        Raises:
            InvalidTransition: No completed entity is waiting.
            MutationApplyFailed: The document refused the change; the entity stays pending.
        """
        payload = self.pending_payload
        if payload is None:
            raise InvalidTransition("No completed entity is waiting to be inserted")
        result = await self._bridge.insert(payload, document_context, self.session.session_id)
        if self.pending_payload is payload:
            self.pending_payload = None
        return result

    def decline_insertion(self) -> EntityPayload:
        payload = self.pending_payload
        if payload is None:
            raise InvalidTransition("No completed entity is waiting to be inserted")
        self.pending_payload = None
        logger.info(f"Insertion of entity {payload.entity_id} declined")
        return payload
