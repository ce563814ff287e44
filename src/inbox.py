"""Inbox folder of queued debate requests: scanning, frontmatter parsing, archiving."""

import shutil
from datetime import datetime
from pathlib import Path

import frontmatter


def ensure_dirs(*dirs: Path) -> None:
    for directory in dirs:
        directory.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Queued requests, oldest first. Zero-byte files are still being written and are skipped."""
    requests = [p for p in inbox_dir.glob("*.md") if p.stat().st_size > 0]
    requests.sort(key=lambda p: (p.stat().st_mtime, p.name))
    return requests


def _as_list(value) -> list[str]:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v).strip() for v in value]


_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


def _as_bool(value) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError(f"Not a boolean: {value!r}")
    return bool(value)


def parse_request_file(file_path: Path) -> tuple[str, dict]:
    """Parse a queued request: body is the topic, frontmatter the options.

    Recognised frontmatter keys: participants (list or comma-separated
    string), rounds (int), audio (bool, quoted "false" included) and
    historical_texts (list of passages, or one string). Unknown keys are dropped.

    Returns:
        (topic, options) where options only holds keys that were present.
    """
    post = frontmatter.load(str(file_path))
    topic = post.content.strip()
    meta = dict(post.metadata)

    options: dict = {}
    if "participants" in meta:
        options["participants"] = _as_list(meta["participants"])
    if "rounds" in meta:
        options["rounds"] = int(meta["rounds"])
    if "audio" in meta:
        options["audio"] = _as_bool(meta["audio"])
    if "historical_texts" in meta:
        texts = meta["historical_texts"]
        options["historical_texts"] = [texts] if isinstance(texts, str) else [str(t) for t in texts]
    return topic, options


def archive_file(file_path: Path, archive_dir: Path, *, failed: bool = False) -> Path:
    """Move a processed request into archive_dir as ``[FAILED_]<timestamp>_<name>``."""
    stamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    prefix = "FAILED_" if failed else ""
    dest = archive_dir / f"{prefix}{stamp}_{file_path.name}"
    shutil.move(str(file_path), str(dest))
    return dest
