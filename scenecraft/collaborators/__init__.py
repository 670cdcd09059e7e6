"""Collaborator adapters and factories."""

from __future__ import annotations

import os
from typing import Optional

from ..config import ScenecraftConfig, load_config
from .base import DocumentEditor, JobBackend, JobPoll, TextGenerator
from .inmemory import (
    EchoTextGenerator,
    InMemoryEditor,
    InMemoryJobBackend,
    ScriptedTextGenerator,
)


def get_text_generator(
    backend: Optional[str] = None, config: Optional[ScenecraftConfig] = None
) -> TextGenerator:
    """Factory function to get the configured text-generation collaborator."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("SCENECRAFT_TEXT_BACKEND")
        or config.text_generation.backend
    ).lower()

    if backend == "echo":
        return EchoTextGenerator()
    elif backend == "agent":
        from .agent import AgentTextGenerator

        return AgentTextGenerator(
            model=config.text_generation.model,
            instructions=config.text_generation.instructions,
        )
    else:
        raise ValueError(f"Unsupported text generation backend: {backend}")


def get_job_backend(
    backend: Optional[str] = None, config: Optional[ScenecraftConfig] = None
) -> JobBackend:
    """Factory function to get the configured generation-job collaborator."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("SCENECRAFT_JOBS_BACKEND")
        or config.jobs.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryJobBackend()
    elif backend == "http":
        from .http import HttpJobBackend

        return HttpJobBackend(
            base_url=config.jobs.base_url, timeout=config.jobs.request_timeout
        )
    else:
        raise ValueError(f"Unsupported job backend: {backend}")


__all__ = [
    "DocumentEditor",
    "EchoTextGenerator",
    "InMemoryEditor",
    "InMemoryJobBackend",
    "JobBackend",
    "JobPoll",
    "ScriptedTextGenerator",
    "TextGenerator",
    "get_job_backend",
    "get_text_generator",
]
