"""Rich console output and markdown transcript export for debate results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _audio_summary(data: dict) -> str:
    transcript = data["transcript"]
    with_audio = sum(1 for turn in transcript if turn["audioFile"])
    if not data.get("audioGenerated"):
        return "disabled"
    if not data["podcast"]:
        return f"no episode ({with_audio}/{len(transcript)} clips)"
    return f"{data['podcast']} ({data['duration']}, {with_audio}/{len(transcript)} clips)"


def print_transcript(topic: str, data: dict) -> None:
    """Print every turn as a panel, marking which turns have audio."""
    console.print(Rule(f"[bold cyan]{topic}[/bold cyan]"))
    for index, turn in enumerate(data["transcript"], start=1):
        subtitle = f"audio: {turn['audioFile']}" if turn["audioFile"] else "no audio"
        console.print(
            Panel(
                turn["text"],
                title=f"[bold]{index}. {turn['speaker']}[/bold]",
                subtitle=subtitle,
                border_style="dim",
            )
        )


def print_episode(data: dict) -> None:
    """Print the one-line episode summary."""
    console.print(Rule("[bold green]Episode[/bold green]"))
    console.print(Text(f"Turns: {len(data['transcript'])} | Audio: {_audio_summary(data)}", style="dim"))


def save_transcript(
    topic: str,
    data: dict,
    output_dir: Path,
    slug_override: str | None = None,
) -> Path:
    """Save the debate transcript as a markdown file.

    Args:
        topic: The debate topic.
        data: The "data" part of a success envelope.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the topic. Useful for inbox mode.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(topic)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    speakers = list(dict.fromkeys(turn["speaker"] for turn in data["transcript"]))

    lines: list[str] = [
        f"# Debate: {topic[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Participants:** {', '.join(speakers)}",
        f"**Turns:** {len(data['transcript'])}",
        f"**Audio:** {_audio_summary(data)}",
        "",
        "---",
        "",
    ]

    for turn in data["transcript"]:
        lines.append(f"### {turn['speaker']}")
        lines.append("")
        lines.append(turn["text"])
        lines.append("")
        if turn["audioFile"]:
            lines.append(f"*Audio: {turn['audioFile']}*")
            lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
