from __future__ import annotations

from pathlib import Path

from lesson_runner.providers.base import TTSProvider, Voice


def _percent(rate: float) -> str:
    return f"{round((rate - 1.0) * 100):+d}%"


def _hertz(pitch: float) -> str:
    return f"{round((pitch - 1.0) * 50):+d}Hz"


class EdgeTTSProvider(TTSProvider):
    def __init__(self, voice: str = "de-DE-KatjaNeural"):
        self.voice = voice

    async def synthesize(
        self, text: str, output_path: Path, rate: float = 1.0, pitch: float = 1.0
    ) -> Path:
        import edge_tts

        communicate = edge_tts.Communicate(
            text, self.voice, rate=_percent(rate), pitch=_hertz(pitch)
        )
        await communicate.save(str(output_path))
        return output_path

    async def list_voices(self) -> list[Voice]:
        import edge_tts

        return [
            Voice(id=v["ShortName"], name=v.get("FriendlyName", v["ShortName"]), lang=v["Locale"])
            for v in await edge_tts.list_voices()
        ]

    def name(self) -> str:
        return f"edge-tts/{self.voice}"
