"""Load settings.yaml into typed dataclasses. Reports which text runtimes have credentials."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

SPEECH_BACKENDS = ("cloud", "local")

DEFAULT_TURN_TEMPLATE = (
    "{system_prompt}\n\n"
    "You are participating in a debate about {topic}. This is round {round}.\n\n"
    "Previous turns:\n{history}\n\n"
    "Respond with 1-2 sentences."
)

DEFAULT_ENHANCE_TEMPLATE = (
    "You are an AI expert in refining prompts for historical accuracy. Based on the provided "
    "historical texts related to the debate topic, refine the original prompt to minimize "
    "anachronisms and ensure the generated content is as historically accurate as possible.\n\n"
    "Debate Topic: {topic}\n"
    "Original Prompt: {prompt}\n\n"
    "Historical Texts:\n{texts}\n\n"
    "Revised Prompt:"
)


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    timeout_sec: int
    max_tokens: int
    api_key_env: str | None = None
    base_url: str | None = None


@dataclass
class PromptsConfig:
    turn: str = DEFAULT_TURN_TEMPLATE
    enhance: str = DEFAULT_ENHANCE_TEMPLATE


@dataclass
class DefaultsConfig:
    rounds: int
    max_rounds: int
    artifact_dir: Path
    output_dir: Path
    personas_file: Path
    runtime: str = "ollama"
    min_participants: int = 2
    max_participants: int = 5
    generate_audio: bool = True
    timeout_sec: int | None = None


@dataclass
class CloudVoiceConfig:
    api_key_env: str = "ELEVENLABS_API_KEY"
    base_url: str = "https://api.elevenlabs.io/v1"
    model_id: str = "eleven_monolingual_v1"
    stability: float = 0.5
    similarity_boost: float = 0.5
    timeout_sec: int = 60


@dataclass
class LocalVoiceConfig:
    model: str = "gemini-2.5-flash-preview-tts"
    base_url: str | None = None
    api_key_env: str | None = "GEMINI_API_KEY"
    timeout_sec: int = 120


@dataclass
class SpeechConfig:
    backend: str = "cloud"
    ffmpeg_binary: str = "ffmpeg"
    transcode_timeout_sec: int = 60
    episode_quality: int = 4
    cloud: CloudVoiceConfig = field(default_factory=CloudVoiceConfig)
    local: LocalVoiceConfig = field(default_factory=LocalVoiceConfig)


@dataclass
class InboxConfig:
    dir: Path = Path("inbox")
    archive_dir: Path = Path("inbox/archive")


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    inbox: InboxConfig = field(default_factory=InboxConfig)
    available_providers: set[str] = field(default_factory=set)


def _resolve(path_value: str, base_dir: Path) -> Path:
    path = Path(path_value)
    return path if path.is_absolute() else base_dir / path


def _load_speech(raw: dict) -> SpeechConfig:
    cloud_raw = raw.get("cloud", {})
    local_raw = raw.get("local", {})
    backend = str(raw.get("backend", "cloud"))
    if backend not in SPEECH_BACKENDS:
        raise ValueError(
            f"Unknown speech backend '{backend}', expected one of: {', '.join(SPEECH_BACKENDS)}"
        )
    return SpeechConfig(
        backend=backend,
        ffmpeg_binary=str(raw.get("ffmpeg_binary", "ffmpeg")),
        transcode_timeout_sec=int(raw.get("transcode_timeout_sec", 60)),
        episode_quality=int(raw.get("episode_quality", 4)),
        cloud=CloudVoiceConfig(
            api_key_env=str(cloud_raw.get("api_key_env", "ELEVENLABS_API_KEY")),
            base_url=str(cloud_raw.get("base_url", "https://api.elevenlabs.io/v1")).rstrip("/"),
            model_id=str(cloud_raw.get("model_id", "eleven_monolingual_v1")),
            stability=float(cloud_raw.get("stability", 0.5)),
            similarity_boost=float(cloud_raw.get("similarity_boost", 0.5)),
            timeout_sec=int(cloud_raw.get("timeout_sec", 60)),
        ),
        local=LocalVoiceConfig(
            model=str(local_raw.get("model", "gemini-2.5-flash-preview-tts")),
            base_url=local_raw.get("base_url"),
            api_key_env=local_raw.get("api_key_env", "GEMINI_API_KEY"),
            timeout_sec=int(local_raw.get("timeout_sec", 120)),
        ),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Relative paths in the ``defaults`` and ``inbox`` sections are kept relative
    to the working directory, except ``personas_file`` which is resolved next
    to the settings file.

    Raises FileNotFoundError if settings file missing, ValueError for an
    unknown speech backend. Runtimes without credentials are logged and left
    out of available_providers rather than raising.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    timeout_raw = defaults_raw.get("timeout_sec")
    defaults = DefaultsConfig(
        rounds=int(defaults_raw["rounds"]),
        max_rounds=int(defaults_raw["max_rounds"]),
        artifact_dir=Path(defaults_raw["artifact_dir"]),
        output_dir=Path(defaults_raw["output_dir"]),
        personas_file=_resolve(defaults_raw["personas_file"], settings_path.parent),
        runtime=str(defaults_raw.get("runtime", "ollama")),
        min_participants=int(defaults_raw.get("min_participants", 2)),
        max_participants=int(defaults_raw.get("max_participants", 5)),
        generate_audio=bool(defaults_raw.get("generate_audio", True)),
        timeout_sec=int(timeout_raw) if timeout_raw is not None else None,
    )

    prompts_raw = raw.get("prompts", {})
    prompts = PromptsConfig(
        turn=prompts_raw.get("turn", DEFAULT_TURN_TEMPLATE),
        enhance=prompts_raw.get("enhance", DEFAULT_ENHANCE_TEMPLATE),
    )

    inbox_raw = raw.get("inbox", {})
    inbox = InboxConfig(
        dir=Path(inbox_raw.get("dir", "inbox")),
        archive_dir=Path(inbox_raw.get("archive_dir", "inbox/archive")),
    )

    speech = _load_speech(raw.get("speech", {}))

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for runtime_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=runtime_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            api_key_env=model_raw.get("api_key_env"),
            base_url=model_raw.get("base_url"),
        )
        models[runtime_name] = model_cfg

        if model_cfg.api_key_env is None:
            available_providers.add(runtime_name)
            logger.info("Runtime available (no key required): %s", runtime_name)
            continue

        api_key = os.environ.get(model_cfg.api_key_env, "").strip()
        if api_key:
            available_providers.add(runtime_name)
            logger.info("Runtime available: %s", runtime_name)
        else:
            logger.info(
                "Runtime skipped (no API key): %s - set %s in .env",
                runtime_name,
                model_cfg.api_key_env,
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        speech=speech,
        inbox=inbox,
        available_providers=available_providers,
    )
