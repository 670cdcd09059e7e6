"""Generation jobs across panel modes using scenecraft."""

import asyncio

from scenecraft import ModeSessionController
from scenecraft.collaborators import EchoTextGenerator, InMemoryEditor, InMemoryJobBackend
from scenecraft.config import JobsConfig, ScenecraftConfig


async def main():
    backend = InMemoryJobBackend()  # Jobs are finished by hand below
    editor = InMemoryEditor({"draft.fountain": "FADE IN:\n"})
    config = ScenecraftConfig(jobs=JobsConfig(poll_interval=0.1))
    controller = ModeSessionController(
        EchoTextGenerator(), backend, editor, config=config, identity_token="user-session-token"
    )
    await controller.open()

    await controller.switch_mode("image")
    image = (await controller.submit("a neon diner at night, rain on the glass")).job
    await controller.switch_mode("audio")
    track = (await controller.submit("", {"tags": "synthwave, slow, melancholic"})).job
    print("Dispatched:", image.job_id, track.job_id)

    await controller.switch_mode("chat")
    backend.complete(image.job_id, "https://cdn.example/diner.png")
    await controller.jobs.watch(image.job_id)

    entry = await controller.switch_mode("image")
    for job in entry.finished_jobs:
        print(f"{job.kind.value} job {job.job_id} finished: {job.result.url}")
        await controller.insert_job_result(job.job_id)

    entry = await controller.switch_mode("audio")
    print("Still running:", [job.job_id for job in entry.running_jobs])

    await controller.close()
    print(editor.documents["draft.fountain"])


if __name__ == "__main__":
    asyncio.run(main())
