"""Tests for configuration loading."""

from scenecraft.collaborators import EchoTextGenerator, get_job_backend, get_text_generator
from scenecraft.collaborators.http import HttpJobBackend
from scenecraft.config import load_config


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
jobs:
  backend: http
  base_url: http://jobs.internal:8080
  max_dispatch_attempts: 5
interview:
  clarify_threshold: 0.5
  draft_profile: true
log_level: DEBUG
"""
    )
    monkeypatch.setenv("SCENECRAFT_CONFIG", str(config_path))

    config = load_config()
    assert config.jobs.backend == "http"
    assert config.jobs.base_url == "http://jobs.internal:8080"
    assert config.jobs.max_dispatch_attempts == 5
    assert config.jobs.max_poll_failures == 3
    assert config.interview.clarify_threshold == 0.5
    assert config.interview.no_answer_floor == 0.3
    assert config.interview.draft_profile is True
    assert config.log_level == "DEBUG"


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SCENECRAFT_CONFIG", raising=False)
    monkeypatch.delenv("SCENECRAFT_TEXT_BACKEND", raising=False)
    monkeypatch.delenv("SCENECRAFT_JOBS_BACKEND", raising=False)

    config = load_config()
    assert config.text_generation.backend == "echo"
    assert config.jobs.backend == "inmemory"
    assert config.jobs.poll_interval == 5.0
    assert config.interview.reply_timeout is None


def test_env_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("jobs:\n  backend: inmemory\n")
    monkeypatch.setenv("SCENECRAFT_JOBS_BACKEND", "http")
    monkeypatch.setenv("SCENECRAFT_JOBS_URL", "http://override:9000")

    config = load_config(str(config_path))
    assert config.jobs.backend == "http"
    assert config.jobs.base_url == "http://override:9000"


def test_factories_use_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
jobs:
  backend: http
  base_url: http://confighost:3001
  request_timeout: 12
"""
    )
    monkeypatch.setenv("SCENECRAFT_CONFIG", str(config_path))
    monkeypatch.delenv("SCENECRAFT_JOBS_BACKEND", raising=False)
    monkeypatch.delenv("SCENECRAFT_JOBS_URL", raising=False)
    monkeypatch.delenv("SCENECRAFT_TEXT_BACKEND", raising=False)

    backend = get_job_backend()
    assert isinstance(backend, HttpJobBackend)
    assert backend.base_url == "http://confighost:3001"
    assert backend.timeout == 12
    assert isinstance(get_text_generator(), EchoTextGenerator)
