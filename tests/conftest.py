"""Shared fixtures: in-memory collaborators and scripted interview replies."""

import pytest

from scenecraft.collaborators import InMemoryEditor, InMemoryJobBackend, ScriptedTextGenerator
from scenecraft.config import JobsConfig, ScenecraftConfig
from scenecraft.session import ModeSessionController

CHARACTER_REPLIES = [
    "Name: Sarah Cole\nAge: mid-30s",
    "Role: protagonist",
    "Appearance: Tall, wears a faded leather jacket, scar on her cheek.",
    "Personality: Always checks the exits when she walks into a room.",
    "Goal: To find her missing sister.",
    "Flaw: Trusts no one.",
    "Background: Former FBI agent who left after a case went wrong.",
    "Relationships: Protective of her partner, distant with family.",
]

CHARACTER_ANSWERS = [
    "Sarah Cole, mid-30s",
    "She's the protagonist",
    "Tall, faded leather jacket, scar on her cheek",
    "Always checks the exits",
    "Find her missing sister",
    "Trusts no one",
    "Ex-FBI",
    "Protective of her partner",
]


@pytest.fixture
def character_replies():
    return list(CHARACTER_REPLIES)


@pytest.fixture
def character_answers():
    return list(CHARACTER_ANSWERS)


@pytest.fixture
def jobs_config():
    return JobsConfig(backoff_base=0.0, backoff_jitter=0.0, poll_interval=0.01)


@pytest.fixture
def text_generator():
    return ScriptedTextGenerator()


@pytest.fixture
def job_backend():
    return InMemoryJobBackend()


@pytest.fixture
def editor():
    return InMemoryEditor({"doc-1": "FADE IN:\n"})


@pytest.fixture
def controller(text_generator, job_backend, editor, jobs_config):
    config = ScenecraftConfig(jobs=jobs_config)
    return ModeSessionController(
        text_generator,
        job_backend,
        editor,
        config=config,
        identity_token="user-token",
        watch_jobs=False,
    )
