from __future__ import annotations

import json
import shlex
from dataclasses import dataclass
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "day_plans_file": "data/day_plans.json",
    "db_path": "progress.db",
    "progress_key": "progress",
    "audio_cache_dir": "audio_cache",
    "tts_provider": "edge-tts",
    "tts_voice": "de-DE-KatjaNeural",
    "target_language": "de",
    "speech_rate": 0.95,
    "speech_pitch": 1.0,
    "player_command": "ffplay -nodisp -autoexit -loglevel quiet",
    "flush_fallback_ms": 50,
}


@dataclass
class Settings:
    day_plans_file: str = DEFAULTS["day_plans_file"]
    db_path: str = DEFAULTS["db_path"]
    progress_key: str = DEFAULTS["progress_key"]
    audio_cache_dir: str = DEFAULTS["audio_cache_dir"]
    tts_provider: str = DEFAULTS["tts_provider"]
    tts_voice: str = DEFAULTS["tts_voice"]
    target_language: str = DEFAULTS["target_language"]
    speech_rate: float = DEFAULTS["speech_rate"]
    speech_pitch: float = DEFAULTS["speech_pitch"]
    player_command: str = DEFAULTS["player_command"]
    flush_fallback_ms: int = DEFAULTS["flush_fallback_ms"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def day_plans_full_path(self) -> Path:
        return self.project_root / self.day_plans_file

    @property
    def db_full_path(self) -> Path:
        return self.project_root / self.db_path

    @property
    def audio_cache_full_path(self) -> Path:
        return self.project_root / self.audio_cache_dir

    @property
    def player_args(self) -> list[str]:
        return shlex.split(self.player_command)

    def to_dict(self) -> dict:
        return {
            "day_plans_file": self.day_plans_file,
            "db_path": self.db_path,
            "progress_key": self.progress_key,
            "audio_cache_dir": self.audio_cache_dir,
            "tts_provider": self.tts_provider,
            "tts_voice": self.tts_voice,
            "target_language": self.target_language,
            "speech_rate": self.speech_rate,
            "speech_pitch": self.speech_pitch,
            "player_command": self.player_command,
            "flush_fallback_ms": self.flush_fallback_ms,
        }


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
