from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Voice:
    id: str
    name: str
    lang: str  # BCP-47 tag, e.g. "de-DE"


@dataclass
class Utterance:
    text: str
    voice: Voice | None = None
    lang: str = ""
    rate: float = 1.0
    pitch: float = 1.0
    on_start: Callable[[], None] | None = None
    on_end: Callable[[], None] | None = None
    on_error: Callable[[str], None] | None = None


class TTSProvider(ABC):
    @abstractmethod
    async def synthesize(
        self, text: str, output_path: Path, rate: float = 1.0, pitch: float = 1.0
    ) -> Path:
        ...

    async def list_voices(self) -> list[Voice]:
        return []

    @abstractmethod
    def name(self) -> str:
        ...


class SpeechEngine(ABC):
    """Playback primitives in the style of the browser speechSynthesis API.

    speak() enqueues; callbacks arrive later, in whatever order the engine
    manages, and may still arrive after cancel().
    """

    on_voices_changed: Callable[[], None] | None = None

    @property
    @abstractmethod
    def supported(self) -> bool:
        ...

    @abstractmethod
    def voices(self) -> list[Voice]:
        ...

    @abstractmethod
    def speak(self, utterance: Utterance) -> None:
        ...

    @abstractmethod
    def cancel(self) -> None:
        ...

    @abstractmethod
    def pause(self) -> None:
        ...
