"""Mode session controller: the panel-level entry point."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Union, assert_never

from pydantic import BaseModel, Field

from .config import ScenecraftConfig
from .contracts import (
    ChatMessage,
    DocumentContext,
    EntityKind,
    EntityPayload,
    FileRef,
    GenerationJob,
    GenerationKind,
    JobStatus,
    Mode,
    ModeSession,
    MutationResult,
    Role,
)
from .collaborators.base import DocumentEditor, JobBackend, TextGenerator
from .conversation import ConversationMachine, TurnResult
from .conversation.prompts import mode_instructions
from .errors import InvalidPayload, MutationApplyFailed, SessionBusy
from .insertion import InsertionBridge
from .jobs import GenerationJobOrchestrator, JobRepository
from .registry import REGISTRY, WorkflowRegistry

logger = logging.getLogger(__name__)


class ModeEntry(BaseModel):
    """Snapshot handed back whenever a mode becomes active."""

    mode: Mode
    document_context: DocumentContext
    finished_jobs: List[GenerationJob] = Field(default_factory=list)
    running_jobs: List[GenerationJob] = Field(default_factory=list)
    interview_cancelled: bool = False


class SubmitOutcome(BaseModel):
    mode: Mode
    turn: Optional[TurnResult] = None
    job: Optional[GenerationJob] = None
    messages: List[ChatMessage] = Field(default_factory=list)


def generation_payload(
    kind: GenerationKind, text: str, options: Mapping[str, Any]
) -> Dict[str, Any]:
    """Request payload for ``kind`` built from the typed text and mode options."""
    payload = dict(options)
    if text.strip():
        field = "lyrics" if kind is GenerationKind.AUDIO else "prompt"
        payload[field] = text
    return payload


class ModeSessionController:
    """Routes panel input to the conversation machine or the job orchestrator.

    Exactly one mode is active. The document context is re-read from the
    editor on every mode entry and before every insertion.
    """

    def __init__(
        self,
        text_generator: TextGenerator,
        job_backend: JobBackend,
        editor: DocumentEditor,
        *,
        config: Optional[ScenecraftConfig] = None,
        registry: Optional[WorkflowRegistry] = None,
        repository: Optional[JobRepository] = None,
        identity_token: Optional[str] = None,
        watch_jobs: bool = True,
    ) -> None:
        self.config = config or ScenecraftConfig()
        if registry is None:
            registry = WorkflowRegistry(REGISTRY.definitions())
            if self.config.interview.workflows_path:
                registry.load(self.config.interview.workflows_path)

        self.session = ModeSession()
        self._editor = editor
        self._backend = job_backend
        self._watch_jobs = watch_jobs
        self._reported: Set[str] = set()

        self.bridge = InsertionBridge(editor)
        self.jobs = GenerationJobOrchestrator(
            job_backend,
            self.config.jobs,
            repository=repository,
            identity_token=identity_token,
        )
        self.machine = ConversationMachine(
            self.session,
            text_generator,
            self.bridge,
            registry=registry,
            config=self.config.interview,
        )

    @property
    def mode(self) -> Mode:
        return self.session.active_mode

    async def open(self) -> ModeEntry:
        await self._backend.connect()
        logger.info(f"Opened session {self.session.session_id} in {self.mode.value} mode")
        return await self._enter(self.mode)

    async def close(self, abandon: bool = False) -> None:
        """Tear the session down. Remote generation jobs keep running."""
        if abandon:
            self.machine.abandon()
        else:
            await self.machine.wait_idle()
        await self.jobs.shutdown()
        await self._backend.disconnect()
        logger.info(f"Closed session {self.session.session_id}")

    async def refresh_context(self) -> DocumentContext:
        context = await self._editor.current_context()
        self.session.document_context = context
        return context

    async def _enter(self, mode: Mode, interview_cancelled: bool = False) -> ModeEntry:
        context = await self.refresh_context()
        finished, running = [], []
        for job in await self.jobs.list_jobs(self.session.active_jobs):
            if job.origin_mode is not mode:
                continue
            if not job.status.is_terminal:
                running.append(job)
            elif job.job_id not in self._reported:
                finished.append(job)
                self._reported.add(job.job_id)
        self.session.active_jobs = [
            job_id for job_id in self.session.active_jobs if job_id not in self._reported
        ]
        return ModeEntry(
            mode=mode,
            document_context=context,
            finished_jobs=finished,
            running_jobs=running,
            interview_cancelled=interview_cancelled,
        )

    async def switch_mode(
        self, new_mode: Union[Mode, str], confirm_discard: bool = False
    ) -> ModeEntry:
        """Make ``new_mode`` the active mode.

        Raises:
            SessionBusy: An interview is in progress and ``confirm_discard`` is False.
        """
        new_mode = Mode(new_mode)
        cancelled = False
        if new_mode is not self.mode:
            interview = self.session.active_interview
            if interview is not None and not interview.is_terminal:
                if not confirm_discard:
                    raise SessionBusy(
                        f"Leaving {self.mode.value} mode would discard the "
                        f"{interview.entity_kind.value} interview"
                    )
                cancelled = self.machine.cancel_workflow()
            logger.info(f"Session {self.session.session_id}: {self.mode.value} -> {new_mode.value}")
            self.session.active_mode = new_mode
        return await self._enter(new_mode, interview_cancelled=cancelled)

    def _hints(self, mode: Mode) -> Dict[str, Any]:
        context = self.session.document_context
        hints: Dict[str, Any] = {"mode": mode.value}
        instructions = mode_instructions(mode)
        if instructions:
            hints["instructions"] = instructions
        if context is not None:
            hints["document_id"] = context.document_id
            hints["cursor_position"] = context.cursor_position
            if context.selection is not None and context.selection.text:
                hints["selection"] = context.selection.text
        return hints

    async def submit(
        self,
        text: str,
        options: Optional[Mapping[str, Any]] = None,
        attachments: Optional[Sequence[FileRef]] = None,
    ) -> SubmitOutcome:
        """Handle one piece of user input in the active mode.

        Raises:
            InvalidPayload: A generation mode received input without the fields its kind needs.
            InvalidTransition: The conversation is still processing the previous turn.
        """
        mode = self.mode
        options = dict(options or {})
        if mode is Mode.CHAT or mode is Mode.DIRECTOR or mode is Mode.DIALOGUE:
            turn = await self.machine.submit_user_turn(text, attachments, self._hints(mode))
            return SubmitOutcome(mode=mode, turn=turn)
        elif mode is Mode.IMAGE or mode is Mode.VIDEO or mode is Mode.AUDIO:
            kind = GenerationKind(mode.value)
            return await self._dispatch(mode, kind, generation_payload(kind, text, options), text, attachments)
        elif mode is Mode.WORKFLOWS:
            raw_kind = options.pop("kind", None)
            if raw_kind is None:
                raise InvalidPayload("Workflows mode needs a generation kind option")
            try:
                kind = GenerationKind(raw_kind)
            except ValueError:
                raise InvalidPayload(f"Unknown generation kind '{raw_kind}'") from None
            return await self._dispatch(mode, kind, generation_payload(kind, text, options), text, attachments)
        else:
            assert_never(mode)

    async def _dispatch(
        self,
        mode: Mode,
        kind: GenerationKind,
        payload: Dict[str, Any],
        text: str,
        attachments: Optional[Sequence[FileRef]],
    ) -> SubmitOutcome:
        job_id = await self.jobs.dispatch(kind, payload, origin_mode=mode)
        user_message = self.session.append(
            ChatMessage(role=Role.USER, text=text, attachments=list(attachments or []), mode=mode)
        )
        job = await self._track(job_id)
        return SubmitOutcome(
            mode=mode, job=job, messages=[user_message, self._job_notice(job)]
        )

    async def _track(self, job_id: str) -> GenerationJob:
        self.session.active_jobs.append(job_id)
        job = await self.jobs.get_status(job_id)
        if self._watch_jobs and not job.status.is_terminal:
            self.jobs.watch(job_id)
        return job

    def _job_notice(self, job: GenerationJob) -> ChatMessage:
        label = job.kind.value.capitalize()
        if job.status is JobStatus.FAILED:
            text, error = f"{label} generation failed: {job.error}", job.error
        else:
            text, error = f"{label} generation started (job {job.job_id}).", None
        return self.session.append(
            ChatMessage(role=Role.SYSTEM, text=text, error=error, mode=job.origin_mode)
        )

    async def job_status(self, job_id: str) -> GenerationJob:
        return await self.jobs.get_status(job_id)

    async def retry_job(self, job_id: str) -> GenerationJob:
        """Re-dispatch a failed job under a fresh id."""
        new_id = await self.jobs.retry(job_id)
        job = await self._track(new_id)
        self._job_notice(job)
        return job

    # -- interviews -----------------------------------------------------

    async def start_interview(
        self, entity_kind: Union[EntityKind, str], confirm_discard: bool = False
    ) -> ChatMessage:
        if self.mode is not Mode.CHAT:
            await self.switch_mode(Mode.CHAT, confirm_discard=confirm_discard)
        return self.machine.start_workflow(entity_kind, confirm_discard=confirm_discard)

    def cancel_interview(self) -> bool:
        return self.machine.cancel_workflow()

    async def retry_turn(self) -> TurnResult:
        return await self.machine.retry_turn()

    def rewind(self) -> ChatMessage:
        return self.machine.rewind()

    # -- insertion ------------------------------------------------------

    def _report_insert_failure(self, exc: MutationApplyFailed) -> None:
        self.session.append(
            ChatMessage(
                role=Role.SYSTEM,
                text="Could not add this to the document. It has been kept so you can try again.",
                error=str(exc),
                mode=self.mode,
            )
        )

    async def confirm_insertion(self) -> MutationResult:
        context = await self.refresh_context()
        try:
            return await self.machine.confirm_insertion(context)
        except MutationApplyFailed as exc:
            self._report_insert_failure(exc)
            raise

    def decline_insertion(self) -> EntityPayload:
        return self.machine.decline_insertion()

    async def insert_job_result(self, job_id: str) -> MutationResult:
        job = await self.jobs.get_status(job_id)
        context = await self.refresh_context()
        try:
            return await self.bridge.insert(job, context, self.session.session_id)
        except MutationApplyFailed as exc:
            self._report_insert_failure(exc)
            raise

    async def insert_reply(self, message_id: str) -> MutationResult:
        message = self.session.find_message(message_id)
        if message is None or message.role is not Role.ASSISTANT:
            raise InvalidPayload(f"No assistant reply '{message_id}' in this session")
        context = await self.refresh_context()
        try:
            return await self.bridge.insert(message, context, self.session.session_id)
        except MutationApplyFailed as exc:
            self._report_insert_failure(exc)
            raise
