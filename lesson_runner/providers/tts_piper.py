from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

from lesson_runner.providers.base import TTSProvider, Voice


class PiperTTSProvider(TTSProvider):
    """Local Piper voices. Pitch is not adjustable; rate maps to length_scale."""

    def __init__(self, model: str = "de_DE-thorsten-medium"):
        self.model = model
        if not shutil.which("piper"):
            raise RuntimeError(
                "Piper not found. Install from https://github.com/rhasspy/piper"
            )

    async def synthesize(
        self, text: str, output_path: Path, rate: float = 1.0, pitch: float = 1.0
    ) -> Path:
        wav_path = output_path.with_suffix(".wav")
        proc = await asyncio.create_subprocess_exec(
            "piper",
            "--model", self.model,
            "--length_scale", f"{1.0 / rate:.3f}",
            "--output_file", str(wav_path),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        await proc.communicate(input=text.encode())
        if proc.returncode != 0:
            raise RuntimeError(f"Piper failed with code {proc.returncode}")

        # Convert WAV to MP3 via ffmpeg
        proc2 = await asyncio.create_subprocess_exec(
            "ffmpeg", "-y", "-i", str(wav_path),
            "-codec:a", "libmp3lame", "-qscale:a", "2",
            str(output_path),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        await proc2.communicate()
        wav_path.unlink(missing_ok=True)
        if proc2.returncode != 0:
            raise RuntimeError(f"ffmpeg failed with code {proc2.returncode}")
        return output_path

    async def list_voices(self) -> list[Voice]:
        # Model names look like "de_DE-thorsten-medium"
        locale = self.model.split("-", 1)[0].replace("_", "-")
        return [Voice(id=self.model, name=self.model, lang=locale)]

    def name(self) -> str:
        return f"piper/{self.model}"
