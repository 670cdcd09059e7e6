from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

from .constants import (
    CLARIFY_THRESHOLD,
    DEFAULT_MAX_DISPATCH_ATTEMPTS,
    DEFAULT_MAX_POLL_FAILURES,
    DEFAULT_POLL_INTERVAL,
    NO_ANSWER_FLOOR,
)


class TextGenerationConfig(BaseModel):
    """Configuration for the text-generation collaborator."""

    backend: Literal["echo", "agent"] = "echo"
    model: str = "anthropic:claude-sonnet-4-5"
    instructions: Optional[str] = None


class JobsConfig(BaseModel):
    """Configuration for the generation-job collaborator and orchestrator."""

    backend: Literal["inmemory", "http"] = "inmemory"
    base_url: str = "http://localhost:3000"
    request_timeout: float = 30.0
    max_dispatch_attempts: int = DEFAULT_MAX_DISPATCH_ATTEMPTS
    backoff_base: float = 1.5
    backoff_jitter: float = 0.5
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_poll_failures: int = DEFAULT_MAX_POLL_FAILURES


class InterviewConfig(BaseModel):
    """Interview behaviour settings."""

    no_answer_floor: float = NO_ANSWER_FLOOR
    clarify_threshold: float = CLARIFY_THRESHOLD
    draft_profile: bool = False
    reply_timeout: Optional[float] = None
    workflows_path: Optional[str] = None


class ScenecraftConfig(BaseModel):
    """Top-level configuration model."""

    text_generation: TextGenerationConfig = TextGenerationConfig()
    jobs: JobsConfig = JobsConfig()
    interview: InterviewConfig = InterviewConfig()
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> ScenecraftConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to SCENECRAFT_CONFIG env
            variable or 'scenecraft.yaml' in the current directory.
    """

    config_path = path or os.getenv("SCENECRAFT_CONFIG", "scenecraft.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = ScenecraftConfig(**data)
    else:
        config = ScenecraftConfig()

    text_backend = os.getenv("SCENECRAFT_TEXT_BACKEND")
    if text_backend:
        config.text_generation.backend = text_backend
    jobs_backend = os.getenv("SCENECRAFT_JOBS_BACKEND")
    if jobs_backend:
        config.jobs.backend = jobs_backend
    jobs_url = os.getenv("SCENECRAFT_JOBS_URL")
    if jobs_url:
        config.jobs.base_url = jobs_url
    return config
