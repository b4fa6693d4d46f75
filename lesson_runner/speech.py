"""Sequential, cancellable narration over an unreliable speech engine.

Every play()/stop() bumps ``epoch``. Callbacks created for a queue carry the
epoch that was live when the queue started and do nothing once it has moved
on, so an engine that keeps talking (or reports late) after a cancel can never
advance, restart, or double-speak a superseded queue.

Before a new queue starts the engine gets a hard reset: pause, cancel, then a
silent flush utterance whose completion cancels once more. A short timer backs
up the flush for engines that never report it. The first utterance of the new
queue is spoken only after the flush has settled.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from lesson_runner.providers.base import SpeechEngine, Utterance, Voice

log = logging.getLogger("lesson_runner.speech")

PROSODY_MIN = 0.6
PROSODY_MAX = 1.4
FLUSH_FALLBACK_DELAY = 0.05  # seconds


class SpeechState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"


def clamp_prosody(value, default: float = 1.0) -> float:
    """Clamp a rate or pitch to [0.6, 1.4]; unusable values become *default*."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        v = default
    if v != v or v == 0:  # NaN or zero
        v = default
    return max(PROSODY_MIN, min(PROSODY_MAX, v))


def pick_default_voice(voices: list[Voice], lang_prefix: str) -> Voice | None:
    prefix = lang_prefix.lower()
    for v in voices:
        if (v.lang or "").lower().startswith(prefix):
            return v
    return voices[0] if voices else None


def _call_later(delay: float, fn: Callable[[], None]) -> None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        fn()
        return
    loop.call_later(delay, fn)


class SpeechQueueController:
    def __init__(
        self,
        engine: SpeechEngine | None,
        target_language: str = "de",
        rate: float = 0.95,
        pitch: float = 1.0,
        flush_fallback_delay: float = FLUSH_FALLBACK_DELAY,
        call_later: Callable[[float, Callable[[], None]], None] | None = None,
    ):
        self.engine = engine
        self.target_language = target_language
        self.rate = rate
        self.pitch = pitch
        self.flush_fallback_delay = flush_fallback_delay
        self._call_later = call_later or _call_later

        self.epoch = 0
        self.queue: list[str] = []
        self.speaking = False
        self._playing = False

        self.voices: list[Voice] = []
        self.voice: Voice | None = None

        self.supported = self._probe_support()
        if self.supported:
            self.engine.on_voices_changed = self.refresh_voices
            self.refresh_voices()

    def _probe_support(self) -> bool:
        if self.engine is None:
            return False
        try:
            return bool(self.engine.supported)
        except Exception as e:
            log.warning("Speech engine capability check failed: %s", e)
            return False

    @property
    def state(self) -> SpeechState:
        return SpeechState.PLAYING if self._playing else SpeechState.IDLE

    # ── Voices ────────────────────────────────────────────────────────────

    def refresh_voices(self) -> None:
        if not self.supported:
            return
        try:
            self.voices = list(self.engine.voices())
        except Exception as e:
            log.warning("Could not list voices: %s", e)
            return
        if self.voice is None or all(v.id != self.voice.id for v in self.voices):
            self.voice = pick_default_voice(self.voices, self.target_language)
            if self.voice:
                log.info("Default voice: %s (%s)", self.voice.name, self.voice.lang)

    def select_voice(self, voice_id: str) -> bool:
        voice = next((v for v in self.voices if v.id == voice_id), None)
        if voice is None:
            return False
        self.stop()
        self.voice = voice
        return True

    @property
    def lang(self) -> str:
        if self.voice and self.voice.lang:
            return self.voice.lang
        return f"{self.target_language}-{self.target_language.upper()}"

    # ── Playback ──────────────────────────────────────────────────────────

    def play(self, texts: list[str]) -> bool:
        """Speak *texts* in order, replacing anything already playing.

        Returns False when nothing was queued (unsupported engine or only
        blank entries).
        """
        self.epoch += 1
        self._clear()
        if not self.supported:
            return False

        queue = [t for t in texts if str(t or "").strip()]
        if not queue:
            self._hard_reset()
            return False

        token = self.epoch
        self.queue = queue
        self._playing = True
        log.debug("Queue %d: %d chunks", token, len(queue))
        self._hard_reset(then=lambda: self._speak_next(token))
        return True

    def stop(self) -> None:
        self.epoch += 1
        self._clear()
        if self.supported:
            self._hard_reset()

    def _clear(self) -> None:
        self.queue = []
        self.speaking = False
        self._playing = False

    def _speak_next(self, token: int) -> None:
        while True:
            if self.epoch != token:
                return
            if not self.queue:
                self._clear()
                log.debug("Queue %d finished", token)
                return
            text = self.queue.pop(0)
            try:
                self.engine.speak(self._build_utterance(text, token))
                return
            except Exception as e:
                log.warning("Engine refused utterance, skipping: %s", e)

    def _build_utterance(self, text: str, token: int) -> Utterance:
        finished = False

        def on_start():
            if self.epoch == token:
                self.speaking = True

        def on_done(error: str | None = None):
            nonlocal finished
            if self.epoch != token:
                log.debug("Dropped stale callback from queue %d", token)
                return
            if finished:
                return
            finished = True
            if error:
                log.warning("Utterance failed (%s), skipping to next", error)
            self._speak_next(token)

        return Utterance(
            text=text,
            voice=self.voice,
            lang=self.lang,
            rate=clamp_prosody(self.rate),
            pitch=clamp_prosody(self.pitch),
            on_start=on_start,
            on_end=on_done,
            on_error=on_done,
        )

    # ── Hard reset ────────────────────────────────────────────────────────

    def _safe(self, step: Callable[[], None]) -> None:
        try:
            step()
        except Exception as e:
            log.debug("Engine %s failed during reset: %s", getattr(step, "__name__", step), e)

    def _hard_reset(self, then: Callable[[], None] | None = None) -> None:
        epoch = self.epoch
        settled = False

        def settle(*_):
            nonlocal settled
            if settled or self.epoch != epoch:
                return
            settled = True
            self._safe(self.engine.cancel)
            if then is not None:
                then()

        self._safe(self.engine.pause)
        self._safe(self.engine.cancel)
        flush = Utterance(text="", lang=self.lang, rate=1.0, on_end=settle, on_error=settle)
        self._safe(lambda: self.engine.speak(flush))
        try:
            self._call_later(self.flush_fallback_delay, settle)
        except Exception as e:
            log.debug("Could not schedule fallback cancel: %s", e)
            settle()

    def status(self) -> dict:
        return {
            "supported": self.supported,
            "state": self.state.value,
            "speaking": self.speaking,
            "pending": len(self.queue),
            "epoch": self.epoch,
            "voice": self.voice.id if self.voice else None,
            "lang": self.lang,
            "rate": clamp_prosody(self.rate),
            "pitch": clamp_prosody(self.pitch),
        }
