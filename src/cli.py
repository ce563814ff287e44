"""Click CLI: config loading, runtime selection, debate runs, persona management."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from config.config_loader import AppConfig, load_config
from src.generation import TextGenerator
from src.healthcheck import run_health_checks
from src.inbox import archive_file, ensure_dirs, parse_request_file, scan_inbox
from src.models import TranscriptTurn
from src.output import print_episode, print_transcript, save_transcript
from src.personas import PersonaReader, YamlPersonaRepository
from src.providers.anthropic import AnthropicProvider
from src.providers.base import AIProvider
from src.providers.gemini import GeminiProvider
from src.providers.openai_provider import OpenAIProvider
from src.service import add_persona, build_orchestrator, create_debate, list_personas
from src.speech.base import SpeechSynthesizer
from src.speech.factory import build_synthesizer

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _load_or_exit() -> AppConfig:
    try:
        return load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available runtimes. Returns dict keyed by runtime name."""
    providers: dict[str, AIProvider] = {}
    for name in config.available_providers:
        model_cfg = config.models[name]
        if model_cfg.sdk not in PROVIDER_CLASSES:
            logging.warning("Runtime '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = PROVIDER_CLASSES[model_cfg.sdk](model_cfg)
        except Exception as exc:
            logging.warning("Failed to instantiate runtime '%s': %s", name, exc)
    return providers


async def _check_runtimes(generator: TextGenerator, personas: PersonaReader, participant_ids: list[str]) -> bool:
    """Ping the models the participants use. Returns False if the user declines to continue."""
    selected = [p for pid in participant_ids if (p := personas.get(pid)) is not None]
    if not selected:
        return True

    console.print("\n[bold]Checking text runtimes...[/bold]")
    results = await run_health_checks(generator, selected)

    failed = []
    for model_id in sorted(results):
        ok, err = results[model_id]
        if ok:
            console.print(f"  [green]OK  [/green] {model_id}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {model_id}: {short_err}")
            failed.append(model_id)

    console.print()
    if not failed:
        return True
    console.print(f"[yellow]{len(failed)} model(s) unreachable:[/yellow] {', '.join(failed)}")
    return click.confirm("Run the debate anyway? Turns from these models will fail.", default=False)


async def _run_single(
    topic: str,
    participant_ids: list[str],
    rounds: int,
    generate_audio: bool,
    config: AppConfig,
    personas: PersonaReader,
    providers: dict[str, AIProvider],
    synthesizer: SpeechSynthesizer | None,
    output_dir: Path,
    seed: int | None,
    timeout_sec: float | None,
    skip_health_check: bool,
    slug_override: str | None = None,
    historical_texts: list[str] | None = None,
) -> Path:
    """Run a single debate and return the saved transcript path.

    Raises:
        click.ClickException: When the debate returns an error envelope.
    """
    orchestrator = build_orchestrator(config, personas, providers, synthesizer, seed=seed)

    if not skip_health_check and not await _check_runtimes(orchestrator.generator, personas, participant_ids):
        raise click.Abort()

    names = [p.display_name if (p := personas.get(pid)) else pid for pid in participant_ids]
    console.print(f"\n[bold cyan]Debate[/bold cyan] - {len(participant_ids)} participants, {rounds} rounds")
    console.print(f"Participants: {', '.join(names)}")
    console.print(f"Audio: {'on (' + config.speech.backend + ')' if generate_audio else 'off'}")
    console.print(f"Topic: [italic]{topic[:80]}{'...' if len(topic) > 80 else ''}[/italic]\n")

    payload = {
        "topic": topic,
        "rounds": rounds,
        "participants": participant_ids,
        "generateAudio": generate_audio,
        "historicalTexts": historical_texts or [],
    }
    total_turns = rounds * len(participant_ids)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Turn 1/{total_turns}...", total=None)
        completed: list[TranscriptTurn] = []

        def on_turn_complete(turn: TranscriptTurn) -> None:
            completed.append(turn)
            marker = "[green]audio[/green]" if turn.audio_ref else "[dim]no audio[/dim]"
            progress.print(f"[green]OK[/green] Round {turn.round_number}: {turn.speaker_name} ({marker})")
            if len(completed) < total_turns:
                progress.update(task, description=f"Turn {len(completed) + 1}/{total_turns}...")
            elif generate_audio:
                progress.update(task, description="Assembling episode...")

        envelope = await create_debate(payload, orchestrator, timeout_sec, on_turn_complete)

    if envelope["status"] != "success":
        raise click.ClickException(envelope["message"])

    data = envelope["data"]
    print_transcript(topic, data)
    print_episode(data)
    if data["podcast"]:
        console.print(f"[dim]Episode: {config.defaults.artifact_dir / data['podcast']}[/dim]")

    saved_path = save_transcript(topic, data, output_dir, slug_override=slug_override)
    console.print(f"[dim]Transcript saved to: {saved_path}[/dim]")
    return saved_path


async def _run_inbox(
    config: AppConfig,
    personas: PersonaReader,
    providers: dict[str, AIProvider],
    synthesizer: SpeechSynthesizer | None,
    inbox_dir: Path,
    archive_dir: Path,
    participants_cli: list[str],
    rounds_cli: int | None,
    audio_cli: bool | None,
    output_dir: Path,
    seed: int | None,
    timeout_sec: float | None,
    historical_texts_cli: list[str] | None = None,
) -> None:
    """Process all .md request files in the inbox folder.

    Precedence for per-file settings: CLI flag > frontmatter > config default.
    """
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No files in inbox.")
        return

    for file_path in files:
        try:
            topic, meta = parse_request_file(file_path)
            effective_participants = participants_cli or meta.get("participants", [])
            effective_rounds = rounds_cli if rounds_cli is not None else meta.get("rounds", config.defaults.rounds)
            effective_audio = (
                audio_cli if audio_cli is not None
                else meta.get("audio", config.defaults.generate_audio)
            )
            effective_texts = historical_texts_cli or meta.get("historical_texts", [])
            saved = await _run_single(
                topic=topic,
                participant_ids=effective_participants,
                rounds=effective_rounds,
                generate_audio=effective_audio,
                config=config,
                personas=personas,
                providers=providers,
                synthesizer=synthesizer,
                output_dir=output_dir,
                seed=seed,
                timeout_sec=timeout_sec,
                skip_health_check=True,
                slug_override=file_path.stem,
                historical_texts=effective_texts,
            )
            archived = archive_file(file_path, archive_dir)
            click.echo(f"Processed: {file_path.name} -> {saved} (archived: {archived.name})")
        except Exception as e:
            logger.error("Failed: %s -- %s", file_path.name, e)
            archive_file(file_path, archive_dir, failed=True)


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(verbose: bool) -> None:
    """Debate Podcast -- historical figures debate a topic, voiced and stitched into an episode.

    \b
    Examples:
      python -m src.cli run "The Future of Humanity" -p tesla -p nietzsche
      python -m src.cli run "Is progress inevitable?" -p curie -p da-vinci --rounds 3 --no-audio
      python -m src.cli run --inbox
      python -m src.cli personas
      python -m src.cli add-persona --name "Albert Einstein" --voice Enif --model ollama/mistral \\
          --system-prompt "You are Albert Einstein, theoretical physicist."
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)


@main.command()
@click.argument("topic", required=False)
@click.option("-p", "--participant", "participants", multiple=True, help="Persona id (repeat for each participant)")
@click.option("--rounds", default=None, type=int, help="Number of debate rounds (default: from config)")
@click.option("--audio/--no-audio", "audio", default=None, help="Synthesize speech and assemble an episode")
@click.option("--seed", default=None, type=int, help="Seed the speaking order for a reproducible run")
@click.option("--timeout", "timeout_sec", default=None, type=float, help="Abort the debate after this many seconds")
@click.option(
    "--historical-text", "historical_text_files", multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Text file of source material; system prompts are refined against it before the debate",
)
@click.option("--output", "output_path", default=None, help="Transcript directory (default: from config)")
@click.option("--inbox", "use_inbox", is_flag=True, default=False, help="Process all .md requests in inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None, help="Override inbox folder path (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False, help="Skip pinging text runtimes at startup")
def run(
    topic: str | None,
    participants: tuple[str, ...],
    rounds: int | None,
    audio: bool | None,
    seed: int | None,
    timeout_sec: float | None,
    historical_text_files: tuple[Path, ...],
    output_path: str | None,
    use_inbox: bool,
    inbox_dir_override: str | None,
    skip_health_check: bool,
) -> None:
    """Run a debate on TOPIC, or every queued request with --inbox."""
    config = _load_or_exit()

    effective_rounds = rounds if rounds is not None else config.defaults.rounds
    effective_audio = audio if audio is not None else config.defaults.generate_audio
    effective_output = Path(output_path) if output_path else config.defaults.output_dir
    effective_timeout = timeout_sec if timeout_sec is not None else config.defaults.timeout_sec
    historical_texts = [p.read_text(encoding="utf-8") for p in historical_text_files]

    providers = _build_all_providers(config)
    if not providers:
        console.print("[bold red]Error:[/bold red] No text runtimes available. Check settings.yaml and .env.")
        sys.exit(1)

    personas = YamlPersonaRepository(config.defaults.personas_file).snapshot()
    synthesizer = build_synthesizer(config.speech)

    async def _main() -> None:
        try:
            if use_inbox:
                inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
                await _run_inbox(
                    config=config,
                    personas=personas,
                    providers=providers,
                    synthesizer=synthesizer,
                    inbox_dir=inbox_dir,
                    archive_dir=config.inbox.archive_dir,
                    participants_cli=list(participants),
                    rounds_cli=rounds,
                    audio_cli=audio,
                    output_dir=effective_output,
                    seed=seed,
                    timeout_sec=effective_timeout,
                    historical_texts_cli=historical_texts,
                )
                return

            if not topic:
                raise click.UsageError("Provide a TOPIC argument or --inbox.")
            await _run_single(
                topic=topic,
                participant_ids=list(participants),
                rounds=effective_rounds,
                generate_audio=effective_audio,
                config=config,
                personas=personas,
                providers=providers,
                synthesizer=synthesizer,
                output_dir=effective_output,
                seed=seed,
                timeout_sec=effective_timeout,
                skip_health_check=skip_health_check,
                historical_texts=historical_texts,
            )
        finally:
            await synthesizer.close()

    asyncio.run(_main())


@main.command("personas")
def personas_command() -> None:
    """List the configured personas."""
    config = _load_or_exit()
    repository = YamlPersonaRepository(config.defaults.personas_file)

    table = Table(title="Personas")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Voice")
    table.add_column("Model")
    for entry in list_personas(repository):
        persona = repository.get(entry["id"])
        table.add_row(entry["id"], entry["name"], persona.voice_id, persona.model_id)
    console.print(table)


@main.command("add-persona")
@click.option("--name", required=True, help="Display name, e.g. 'Albert Einstein'")
@click.option("--id", "persona_id", default=None, help="Unique id (default: derived from the name)")
@click.option("--system-prompt", required=True, help="Who the persona is and how it argues")
@click.option("--voice", "voice_id", required=True, help="Voice id (cloud) or voice preset (local)")
@click.option("--model", "model_id", required=True, help="Model id, e.g. ollama/mistral")
def add_persona_command(
    name: str,
    persona_id: str | None,
    system_prompt: str,
    voice_id: str,
    model_id: str,
) -> None:
    """Add a persona to the persona file."""
    config = _load_or_exit()
    repository = YamlPersonaRepository(config.defaults.personas_file)
    envelope = add_persona(
        {
            "id": persona_id,
            "name": name,
            "systemPrompt": system_prompt,
            "voiceId": voice_id,
            "modelId": model_id,
        },
        repository,
    )
    if envelope["status"] != "success":
        raise click.ClickException(envelope["message"])
    persona = envelope["persona"]
    console.print(f"[green]Added[/green] {persona['name']} ([cyan]{persona['id']}[/cyan])")


if __name__ == "__main__":
    main()
