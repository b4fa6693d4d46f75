"""Speech engine that synthesizes each utterance and plays it locally.

Utterances are spoken one at a time by a single worker task: synthesize
through a TTSProvider (cached on disk), then hand the file to an external
player process. cancel() kills the player, drops everything queued, and
reports the dropped utterances as interrupted, the same way a browser engine
does.
"""
from __future__ import annotations

import asyncio
import logging
import shutil
from collections import deque
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from lesson_runner.audio import get_or_create_audio
from lesson_runner.providers.base import SpeechEngine, TTSProvider, Utterance, Voice

if TYPE_CHECKING:
    from lesson_runner.db import Database

log = logging.getLogger("lesson_runner.engine")


class SynthesisSpeechEngine(SpeechEngine):
    def __init__(
        self,
        tts_factory: Callable[[str | None], TTSProvider],
        db: Database,
        cache_dir: Path,
        player_command: list[str],
    ):
        self.tts_factory = tts_factory
        self.db = db
        self.cache_dir = cache_dir
        self.player_command = player_command
        self.on_voices_changed = None

        self._voices: list[Voice] = []
        self._pending: deque[Utterance] = deque()
        self._current: Utterance | None = None
        self._worker: asyncio.Task | None = None
        self._player: asyncio.subprocess.Process | None = None
        self._paused = False
        self._resumed = asyncio.Event()
        self._resumed.set()

    @property
    def supported(self) -> bool:
        return bool(self.player_command) and shutil.which(self.player_command[0]) is not None

    def voices(self) -> list[Voice]:
        return list(self._voices)

    async def refresh_voices(self) -> None:
        """Populate the voice list (slow; runs in the background at startup)."""
        try:
            self._voices = await self.tts_factory(None).list_voices()
        except Exception as e:
            log.warning("Voice list unavailable: %s", e)
            return
        log.info("Loaded %d voices", len(self._voices))
        if self.on_voices_changed:
            self.on_voices_changed()

    # ── Playback primitives ───────────────────────────────────────────────

    def speak(self, utterance: Utterance) -> None:
        loop = asyncio.get_running_loop()
        self._pending.append(utterance)
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._run())

    def pause(self) -> None:
        """Hold back the next utterance until resume() or cancel()."""
        self._paused = True
        self._resumed.clear()

    def resume(self) -> None:
        self._paused = False
        self._resumed.set()

    def cancel(self) -> None:
        dropped = list(self._pending)
        self._pending.clear()
        current, self._current = self._current, None

        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
        self._worker = None
        self._kill_player()
        self.resume()

        if current is not None:
            self._emit(current.on_error, "interrupted")
        for u in dropped:
            self._emit(u.on_error, "canceled")

    # ── Internals ─────────────────────────────────────────────────────────

    def _emit(self, callback, *args) -> None:
        if callback is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("No event loop, dropping engine callback")
            return
        loop.call_soon(self._invoke, callback, args)

    @staticmethod
    def _invoke(callback, args) -> None:
        try:
            callback(*args)
        except Exception:
            log.exception("Speech callback raised")

    def _kill_player(self) -> None:
        if self._player is not None and self._player.returncode is None:
            try:
                self._player.kill()
            except ProcessLookupError:
                pass
        self._player = None

    async def _run(self) -> None:
        while self._pending:
            if self._paused:
                await self._resumed.wait()
                continue
            u = self._pending.popleft()
            self._current = u
            self._emit(u.on_start)
            try:
                if u.text.strip():
                    await self._say(u)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning("Utterance failed: %s", e)
                self._current = None
                self._emit(u.on_error, "synthesis-failed")
                continue
            self._current = None
            self._emit(u.on_end)

    async def _say(self, u: Utterance) -> None:
        tts = self.tts_factory(u.voice.id if u.voice else None)
        path = await get_or_create_audio(
            u.text, tts, self.db, self.cache_dir, rate=u.rate, pitch=u.pitch
        )
        if path is None:
            raise RuntimeError("no audio produced")

        self._player = await asyncio.create_subprocess_exec(
            *self.player_command, str(path),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            code = await self._player.wait()
        finally:
            self._kill_player()
        if code != 0:
            raise RuntimeError(f"player exited with code {code}")
