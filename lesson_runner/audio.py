"""Synthesized narration cache."""
from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lesson_runner.db import Database
    from lesson_runner.providers.base import TTSProvider

log = logging.getLogger("lesson_runner.audio")


def audio_hash(text: str, voice: str = "", rate: float = 1.0, pitch: float = 1.0) -> str:
    key = f"{voice}|{rate:.2f}|{pitch:.2f}|{text}"
    return hashlib.sha256(key.encode()).hexdigest()[:16]


async def get_or_create_audio(
    text: str,
    tts: TTSProvider,
    db: Database,
    cache_dir: Path,
    rate: float = 1.0,
    pitch: float = 1.0,
) -> Path | None:
    """Get cached audio or synthesize it."""
    cache_dir.mkdir(parents=True, exist_ok=True)
    h = audio_hash(text, tts.name(), rate, pitch)

    cached_path = db.get_audio_cache(h)
    if cached_path:
        p = Path(cached_path)
        if p.exists():
            return p

    output_path = cache_dir / f"{h}.mp3"
    try:
        await tts.synthesize(text, output_path, rate=rate, pitch=pitch)
        db.set_audio_cache(h, str(output_path), tts.name())
        return output_path
    except Exception as e:
        log.warning("TTS error: %s", e)
        return None
