"""Click CLI: loads settings, wires the orchestrator to the console, runs one conversation."""

import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.logging import RichHandler

from chatroom.catalog import ModelCatalog
from chatroom.conversation import MUTUAL_TERMINATION_SETTING, Orchestrator, web_search_setting
from chatroom.models import Slot
from chatroom.output import ConsolePresenter, console, save_transcript
from chatroom.participants import display_name
from chatroom.providers.openrouter import OpenRouterTransport
from chatroom.scheduler import DEFAULT_TOPIC
from chatroom.storage import FileStore
from config.config_loader import (
    AppConfig,
    ConfigurationError,
    load_config,
    parse_max_exchanges,
)

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _apply_overrides(
    config: AppConfig,
    max_exchanges: str | None,
    model_a: str | None,
    model_b: str | None,
) -> AppConfig:
    """Return config with CLI flags applied. CLI flags win over settings.yaml."""
    if max_exchanges is not None:
        config.conversation.max_exchanges = parse_max_exchanges(max_exchanges)
    for slot, model in ((Slot.A, model_a), (Slot.B, model_b)):
        if model:
            config.participants[slot] = dataclasses.replace(config.participants[slot], model=model)
    return config


def _check_models(config: AppConfig, catalog: ModelCatalog) -> list[Slot]:
    """Warn about configured models the catalog does not list. Returns the affected slots."""
    unknown = []
    for slot in Slot:
        participant = config.participants[slot]
        if participant.is_human or not catalog.ids() or participant.model in catalog:
            continue
        logger.warning(
            "%s model %s is not in the catalog (known: %s); using default token limits",
            slot.value,
            participant.model,
            ", ".join(catalog.ids()),
        )
        unknown.append(slot)
    return unknown


def _save_toggles(
    store: FileStore,
    mutual_termination: bool | None,
    web_search_a: bool | None,
    web_search_b: bool | None,
) -> None:
    """Persist toggles given on the command line so later runs keep them."""
    if mutual_termination is not None:
        store.write_setting(MUTUAL_TERMINATION_SETTING, mutual_termination)
    for slot, flag in ((Slot.A, web_search_a), (Slot.B, web_search_b)):
        if flag is not None:
            store.write_setting(web_search_setting(slot), flag)


async def _run_conversation(orchestrator: Orchestrator, topic: str) -> None:
    """Start the conversation and answer human turns from the terminal until it ends."""
    await orchestrator.start(topic)
    while True:
        await orchestrator.wait_until_settled()
        state = orchestrator.state
        if not (state.active and state.waiting_for_human_input):
            return
        name = orchestrator.display_name(state.current_turn)
        text = await asyncio.to_thread(click.prompt, name, prompt_suffix="> ")
        await orchestrator.send(text)


async def _run(orchestrator: Orchestrator, transport: OpenRouterTransport, topic: str) -> None:
    try:
        await _run_conversation(orchestrator, topic)
    finally:
        orchestrator.stop()
        await transport.aclose()


@click.command()
@click.argument("topic", required=False, default="")
@click.option("--max-exchanges", default=None, help="Number of turns before stopping, or 'unlimited'")
@click.option("--model-a", default=None, help="Model id for slot 1 ('human' to type its turns)")
@click.option("--model-b", default=None, help="Model id for slot 2 ('human' to type its turns)")
@click.option("--mutual-termination/--no-mutual-termination", default=None,
              help="End when the models signal [END] on 4 consecutive turns (saved)")
@click.option("--web-search-a/--no-web-search-a", default=None, help="Web search for slot 1 (saved)")
@click.option("--web-search-b/--no-web-search-b", default=None, help="Web search for slot 2 (saved)")
@click.option("--settings", "settings_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Path to settings.yaml")
@click.option("--data-dir", default=".chatroom", show_default=True, help="Where messages and toggles are stored")
@click.option("--clear-history", is_flag=True, help="Delete stored messages from earlier runs before starting")
@click.option("--transcript-dir", default=None, help="Save a markdown transcript to this directory")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    topic: str,
    max_exchanges: str | None,
    model_a: str | None,
    model_b: str | None,
    mutual_termination: bool | None,
    web_search_a: bool | None,
    web_search_b: bool | None,
    settings_path: str | None,
    data_dir: str,
    transcript_dir: str | None,
    clear_history: bool,
    verbose: bool,
) -> None:
    """Chatroom -- two language models (or a human) talking in alternating turns.

    \b
    Examples:
      chatroom "Is mathematics discovered or invented?"
      chatroom "Tell me a story" --max-exchanges unlimited --mutual-termination
      chatroom "Interview me" --model-b human --transcript-dir ./transcripts
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(settings_path)) if settings_path else load_config()
        config = _apply_overrides(config, max_exchanges, model_a, model_b)
    except (FileNotFoundError, ConfigurationError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    logger.debug("Settings loaded; catalog has %d model(s)", len(config.catalog))

    store = FileStore(Path(data_dir))
    if clear_history:
        store.clear_messages()
    _save_toggles(store, mutual_termination, web_search_a, web_search_b)

    catalog = ModelCatalog(config.catalog)
    _check_models(config, catalog)
    transport = OpenRouterTransport(config.api)
    presenter = ConsolePresenter()
    orchestrator = Orchestrator(config, transport, presenter, store, catalog=catalog)

    names = {slot.value: display_name(slot, config.participants[slot], catalog) for slot in Slot}
    console.print(f"\n[bold cyan]Chatroom[/bold cyan] {names[Slot.A.value]} vs {names[Slot.B.value]}\n")

    try:
        asyncio.run(_run(orchestrator, transport, topic))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")

    console.print(f"\n[dim]{presenter.status} after {orchestrator.state.exchange_count} exchange(s)[/dim]")

    if transcript_dir and len(orchestrator.history):
        saved = save_transcript(
            orchestrator.history.messages,
            Path(transcript_dir),
            topic=topic.strip() or DEFAULT_TOPIC,
            participants=names,
        )
        console.print(f"[dim]Transcript saved to: {saved}[/dim]")


if __name__ == "__main__":
    main()
