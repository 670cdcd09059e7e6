"""Location interview example using scenecraft.

Runs against the configured text generator. With the default ``echo``
backend no model is called; set ``SCENECRAFT_TEXT_BACKEND=agent`` to let a
pydantic-ai agent phrase the replies.
"""

import asyncio

from scenecraft import ModeSessionController, load_config
from scenecraft.collaborators import InMemoryEditor, get_job_backend, get_text_generator

ANSWERS = [
    "The old harbor pier",
    "Rotting boards, gulls wheeling over rusted cranes",
    "Lonely, exposed, a little dangerous",
    "Climb the cranes, hide between stacked crates",
    "Night, sodium lamps and fog",
    "A foghorn somewhere out in the dark",
    "Where Sarah lost her sister ten years ago",
    "Needs a fog machine and a practical lamp rig",
]


async def main():
    config = load_config()
    editor = InMemoryEditor({"draft.fountain": "FADE IN:\n"})
    controller = ModeSessionController(
        get_text_generator(config=config),
        get_job_backend(config=config),
        editor,
        config=config,
    )
    await controller.open()

    question = await controller.start_interview("location")
    print("Assistant:", question.text)
    for answer in ANSWERS:
        if controller.machine.interview is None:
            break
        print("You:", answer)
        outcome = await controller.submit(answer)
        for message in outcome.turn.messages:
            print("Assistant:", message.text)

    if controller.machine.pending_payload is not None:
        result = await controller.confirm_insertion()
        print(f"Inserted at {result.position} in {result.document_id}")

    await controller.close()
    print(editor.documents["draft.fountain"])


if __name__ == "__main__":
    asyncio.run(main())
