"""Mode session controller tests."""

import asyncio

import pytest

from scenecraft.contracts import GenerationKind, JobStatus, Mode, Role
from scenecraft.errors import (
    CollaboratorRejected,
    InvalidPayload,
    MutationApplyFailed,
    SessionBusy,
)
from scenecraft.session import generation_payload

SCREENPLAY_BEAT = "SARAH stares at the rain-streaked window, saying nothing for a long time."


@pytest.mark.asyncio
async def test_open_enters_chat_with_document_context(controller):
    entry = await controller.open()

    assert entry.mode is Mode.CHAT
    assert entry.document_context.document_id == "doc-1"
    assert entry.document_context.cursor_position == len("FADE IN:\n")
    assert entry.finished_jobs == [] and entry.running_jobs == []


@pytest.mark.asyncio
async def test_switch_refuses_to_drop_interview_silently(controller):
    await controller.open()
    await controller.start_interview("character")

    with pytest.raises(SessionBusy):
        await controller.switch_mode("image")
    assert controller.mode is Mode.CHAT
    assert controller.session.active_interview is not None

    entry = await controller.switch_mode("image", confirm_discard=True)
    assert entry.interview_cancelled is True
    assert controller.mode is Mode.IMAGE
    assert controller.session.active_interview is None
    assert controller.session.transcript[-1].text == "Character interview cancelled."


@pytest.mark.asyncio
async def test_switch_without_interview_needs_no_confirmation(controller):
    await controller.open()
    entry = await controller.switch_mode(Mode.AUDIO)
    assert entry.mode is Mode.AUDIO
    assert entry.interview_cancelled is False


@pytest.mark.asyncio
async def test_image_mode_dispatches_prompt(controller, job_backend):
    await controller.open()
    await controller.switch_mode("image")

    outcome = await controller.submit("a neon diner at night", {"aspect_ratio": "16:9"})

    assert job_backend.submissions == [
        (GenerationKind.IMAGE, {"aspect_ratio": "16:9", "prompt": "a neon diner at night"}, "user-token")
    ]
    assert outcome.job.status is JobStatus.QUEUED
    assert outcome.job.origin_mode is Mode.IMAGE
    user, notice = outcome.messages
    assert user.role is Role.USER and user.mode is Mode.IMAGE
    assert notice.role is Role.SYSTEM
    assert outcome.job.job_id in notice.text
    assert controller.session.active_jobs == [outcome.job.job_id]


@pytest.mark.asyncio
async def test_generation_mode_rejects_missing_prompt(controller, job_backend):
    await controller.open()
    await controller.switch_mode("video")

    with pytest.raises(InvalidPayload):
        await controller.submit("   ")
    assert job_backend.submissions == []
    assert controller.session.transcript == []


@pytest.mark.asyncio
async def test_audio_mode_sends_lyrics_and_tags(controller, job_backend):
    await controller.open()
    await controller.switch_mode("audio")

    await controller.submit("Neon rain on an empty street", {"tags": "synthwave, slow"})
    kind, payload, _ = job_backend.submissions[0]
    assert kind is GenerationKind.AUDIO
    assert payload == {"tags": "synthwave, slow", "lyrics": "Neon rain on an empty street"}


def test_generation_payload_keeps_options_without_text():
    assert generation_payload(GenerationKind.AUDIO, "", {"tags": "lofi"}) == {"tags": "lofi"}
    assert generation_payload(GenerationKind.VIDEO, "rain", {}) == {"prompt": "rain"}


@pytest.mark.asyncio
async def test_workflows_mode_takes_kind_from_options(controller, job_backend):
    await controller.open()
    await controller.switch_mode("workflows")

    outcome = await controller.submit("storyboard the chase", {"kind": "video"})
    assert outcome.job.kind is GenerationKind.VIDEO
    assert outcome.job.origin_mode is Mode.WORKFLOWS
    assert job_backend.submissions[0][1] == {"prompt": "storyboard the chase"}

    with pytest.raises(InvalidPayload):
        await controller.submit("storyboard the chase")
    with pytest.raises(InvalidPayload):
        await controller.submit("storyboard the chase", {"kind": "hologram"})


@pytest.mark.asyncio
async def test_rejected_dispatch_is_reported_in_transcript(controller, job_backend):
    await controller.open()
    await controller.switch_mode("image")
    job_backend.fail_next_submits(CollaboratorRejected("credits exhausted"))

    outcome = await controller.submit("a pier")
    assert outcome.job.status is JobStatus.FAILED
    assert outcome.messages[-1].error is not None

    job_backend_calls = len(job_backend.submissions)
    retried = await controller.retry_job(outcome.job.job_id)
    assert retried.retry_of == outcome.job.job_id
    assert retried.status is JobStatus.QUEUED
    assert len(job_backend.submissions) == job_backend_calls + 1


@pytest.mark.asyncio
async def test_jobs_survive_mode_switches_and_report_once(controller, job_backend):
    await controller.open()
    await controller.switch_mode("image")
    image = (await controller.submit("a neon diner")).job
    await controller.switch_mode("video")
    video = (await controller.submit("rain on a window")).job
    await controller.switch_mode("chat")

    job_backend.complete(image.job_id, "https://cdn.test/diner.png")
    await controller.jobs.refresh(image.job_id)
    await controller.jobs.refresh(video.job_id)

    entry = await controller.switch_mode("image")
    assert [job.job_id for job in entry.finished_jobs] == [image.job_id]
    assert entry.finished_jobs[0].result.url == "https://cdn.test/diner.png"

    entry = await controller.switch_mode("video")
    assert entry.finished_jobs == []
    assert [job.job_id for job in entry.running_jobs] == [video.job_id]

    entry = await controller.switch_mode("image")
    assert entry.finished_jobs == []
    assert controller.session.active_jobs == [video.job_id]
    assert (await controller.job_status(image.job_id)).status is JobStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_director_mode_sends_mode_hints(controller, text_generator, editor):
    await controller.open()
    await controller.switch_mode("director")
    text_generator.queue(SCREENPLAY_BEAT)

    outcome = await controller.submit("Give me a quiet beat before the reveal")

    hints = text_generator.calls[-1][1]
    assert hints["purpose"] == "chat"
    assert hints["mode"] == "director"
    assert "film director" in hints["instructions"]
    assert hints["document_id"] == "doc-1"
    assert outcome.turn.reply.text == SCREENPLAY_BEAT
    assert outcome.turn.reply.mode is Mode.DIRECTOR
    assert outcome.turn.insertable is True


@pytest.mark.asyncio
async def test_insert_reply_applies_once(controller, text_generator, editor):
    await controller.open()
    text_generator.queue(SCREENPLAY_BEAT)
    reply = (await controller.submit("Write the opening beat")).turn.reply

    first = await controller.insert_reply(reply.id)
    second = await controller.insert_reply(reply.id)

    assert first.duplicate is False
    assert second.duplicate is True
    assert len(editor.mutations) == 1
    assert editor.documents["doc-1"] == f"FADE IN:\n\n{SCREENPLAY_BEAT}\n"


@pytest.mark.asyncio
async def test_insert_reply_rejects_user_messages(controller, text_generator):
    await controller.open()
    text_generator.queue(SCREENPLAY_BEAT)
    outcome = await controller.submit("Write the opening beat")

    with pytest.raises(InvalidPayload):
        await controller.insert_reply(outcome.turn.user_message.id)
    with pytest.raises(InvalidPayload):
        await controller.insert_reply("missing")


@pytest.mark.asyncio
async def test_insert_job_result_renders_asset(controller, job_backend, editor):
    await controller.open()
    await controller.switch_mode("image")
    job = (await controller.submit("a neon diner")).job

    with pytest.raises(InvalidPayload):
        await controller.insert_job_result(job.job_id)

    job_backend.complete(job.job_id, "https://cdn.test/diner.png")
    await controller.jobs.refresh(job.job_id)
    result = await controller.insert_job_result(job.job_id)

    assert result.content == "\n[[image: https://cdn.test/diner.png]]\n"
    assert editor.documents["doc-1"].endswith("[[image: https://cdn.test/diner.png]]\n")


@pytest.mark.asyncio
async def test_insert_failure_is_reported_and_retryable(controller, text_generator, editor):
    await controller.open()
    text_generator.queue(SCREENPLAY_BEAT)
    reply = (await controller.submit("Write the opening beat")).turn.reply

    editor.close_document("doc-1")
    with pytest.raises(MutationApplyFailed):
        await controller.insert_reply(reply.id)
    notice = controller.session.transcript[-1]
    assert notice.role is Role.SYSTEM
    assert notice.error is not None

    editor.documents["doc-1"] = "FADE IN:\n"
    result = await controller.insert_reply(reply.id)
    assert result.duplicate is False
    assert len(editor.mutations) == 1


@pytest.mark.asyncio
async def test_start_interview_from_generation_mode(controller):
    await controller.open()
    await controller.switch_mode("image")

    question = await controller.start_interview("location")

    assert controller.mode is Mode.CHAT
    assert question.workflow_tag == "location-interview"
    assert controller.machine.current_question is not None


@pytest.mark.asyncio
async def test_close_waits_for_inflight_reply(controller, text_generator):
    await controller.open()
    text_generator.queue("Hello there, what are we writing today?")
    text_generator.hold()

    turn = asyncio.create_task(controller.submit("hi"))
    await asyncio.sleep(0)
    closing = asyncio.create_task(controller.close())
    await asyncio.sleep(0)
    assert not closing.done()

    text_generator.release()
    await turn
    await asyncio.wait_for(closing, timeout=1)
    assert controller.session.transcript[-1].role is Role.ASSISTANT
