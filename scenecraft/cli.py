"""Command line interface for inspecting workflows and running interviews."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer

from scenecraft import ModeSessionController, load_config
from scenecraft.collaborators import InMemoryEditor, InMemoryJobBackend, get_text_generator
from scenecraft.config import ScenecraftConfig
from scenecraft.errors import MutationApplyFailed, WorkflowNotFound
from scenecraft.parsing import parse
from scenecraft.registry import REGISTRY, WorkflowDefinition, WorkflowRegistry

app = typer.Typer(help="CLI for scenecraft interviews")

workflow_app = typer.Typer(help="Commands for inspecting interview workflows")
app.add_typer(workflow_app, name="workflow")

_state = {"config_path": None}


@app.callback()
def main(
    config: Optional[Path] = typer.Option(None, help="Path to a scenecraft YAML config"),
    log_level: Optional[str] = typer.Option(None, help="Override the configured log level"),
) -> None:
    """Scenecraft CLI entry point."""
    _state["config_path"] = str(config) if config else None
    level = (log_level or _load().log_level).upper()
    logging.basicConfig(
        level=level, format="%(levelname)s %(name)s: %(message)s", force=True
    )


def _load() -> ScenecraftConfig:
    return load_config(_state["config_path"])


def _registry(config: ScenecraftConfig) -> WorkflowRegistry:
    registry = WorkflowRegistry(REGISTRY.definitions())
    if config.interview.workflows_path:
        registry.load(config.interview.workflows_path)
    return registry


def _workflow_or_exit(registry: WorkflowRegistry, kind: str) -> WorkflowDefinition:
    try:
        return registry.get(kind)
    except WorkflowNotFound as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


@workflow_app.command("list")
def workflow_list() -> None:
    """List the registered interview workflows."""
    definitions = _registry(_load()).definitions()
    if not definitions:
        typer.echo("No workflows registered")
        return
    for definition in definitions:
        typer.echo(
            f"{definition.entity_kind.value}\t{definition.id}\t{len(definition.questions)} questions"
        )


@workflow_app.command("show")
def workflow_show(kind: str) -> None:
    """
    Show the questions of one workflow.

    Example:
        scenecraft workflow show character
        # Output: character-interview (character)
        #         0. [name] What's your character's name and rough age?
        #         ...
    """
    definition = _workflow_or_exit(_registry(_load()), kind)
    typer.echo(f"{definition.id} ({definition.entity_kind.value})")
    for question in definition.questions:
        flags = "" if question.required else " (optional)"
        line = f"{question.index}. [{question.target_field}]{flags} {question.prompt}"
        if question.skip_if is not None:
            rule = question.skip_if
            condition = rule.equals if rule.equals is not None else rule.one_of
            if condition is None:
                condition = "present" if rule.present else "absent"
            line += f"  (skipped if {rule.field}={condition})"
        typer.echo(line)


@app.command("parse")
def parse_command(
    kind: str,
    text: str,
    field: Optional[str] = typer.Option(None, help="Field the question asked for"),
    answered: Optional[List[str]] = typer.Option(None, help="Fields that already have answers"),
) -> None:
    """Parse TEXT against the fields of a workflow and print the result as JSON."""
    definition = _workflow_or_exit(_registry(_load()), kind)
    result = parse(text, definition.output_schema, asked_field=field, answered=answered or ())
    typer.echo(result.model_dump_json(indent=2))


async def _run_interview(kind: str, config: ScenecraftConfig, registry: WorkflowRegistry) -> str:
    editor = InMemoryEditor()
    controller = ModeSessionController(
        get_text_generator(config=config),
        InMemoryJobBackend(),
        editor,
        config=config,
        registry=registry,
        watch_jobs=False,
    )
    await controller.open()
    first = await controller.start_interview(kind)
    typer.echo(f"Assistant: {first.text}")

    while controller.machine.interview is not None:
        answer = typer.prompt("You", prompt_suffix=f" [{controller.machine.input_placeholder}]: ")
        outcome = await controller.submit(answer)
        for message in outcome.turn.messages:
            if message.error:
                typer.secho(f"{message.text} ({message.error})", fg=typer.colors.RED)
            else:
                typer.echo(f"Assistant: {message.text}")

    if controller.machine.pending_payload is not None:
        if typer.confirm("Insert into the document?", default=True):
            try:
                await controller.confirm_insertion()
            except MutationApplyFailed as exc:
                typer.secho(f"Insertion failed: {exc}", fg=typer.colors.RED)
        else:
            controller.decline_insertion()

    await controller.close()
    return editor.documents[editor.active]


@app.command("interview")
def interview(kind: str) -> None:
    """
    Run an interactive interview against the configured text generator.

    The finished entity is written to an in-memory document, which is printed
    at the end.

    Example:
        scenecraft interview character
    """
    config = _load()
    registry = _registry(config)
    _workflow_or_exit(registry, kind)
    document = asyncio.run(_run_interview(kind, config, registry))
    typer.echo("--- document ---")
    typer.echo(document.strip() or "(empty)")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
