"""Tests for narration audio caching."""
from __future__ import annotations

from pathlib import Path

import pytest

from lesson_runner.audio import audio_hash, get_or_create_audio


class FakeTTS:
    """Simple fake TTS that avoids AsyncMock's `name` attribute issue."""

    def __init__(self, side_effect=None, name="fake-tts"):
        self._side_effect = side_effect
        self._name = name
        self.synthesize_called = 0
        self.last_prosody = None

    async def synthesize(self, text: str, output_path: Path, rate: float = 1.0, pitch: float = 1.0) -> Path:
        self.synthesize_called += 1
        self.last_prosody = (rate, pitch)
        if self._side_effect:
            raise self._side_effect
        output_path.write_bytes(b"fake mp3 data")
        return output_path

    def name(self) -> str:
        return self._name


class TestAudioHash:
    def test_deterministic(self):
        assert audio_hash("Hallo Welt", "v") == audio_hash("Hallo Welt", "v")

    def test_different_text_different_hash(self):
        assert audio_hash("Hallo Welt") != audio_hash("Tschüss Welt")

    def test_voice_and_prosody_are_part_of_key(self):
        base = audio_hash("Hallo", "a", 1.0, 1.0)
        assert audio_hash("Hallo", "b", 1.0, 1.0) != base
        assert audio_hash("Hallo", "a", 0.9, 1.0) != base
        assert audio_hash("Hallo", "a", 1.0, 1.2) != base

    def test_prosody_rounded(self):
        assert audio_hash("Hallo", "a", 0.951) == audio_hash("Hallo", "a", 0.95)

    def test_hash_shape(self):
        h = audio_hash("any text here")
        assert len(h) == 16
        assert all(c in "0123456789abcdef" for c in h)


class TestGetOrCreateAudio:
    @pytest.mark.asyncio
    async def test_creates_new_audio(self, tmp_db, tmp_path):
        cache_dir = tmp_path / "audio"
        tts = FakeTTS()

        result = await get_or_create_audio("Hallo", tts, tmp_db, cache_dir, rate=0.95, pitch=1.1)

        assert result is not None
        assert result.exists()
        assert result.suffix == ".mp3"
        assert tts.synthesize_called == 1
        assert tts.last_prosody == (0.95, 1.1)
        assert tmp_db.get_audio_cache(audio_hash("Hallo", "fake-tts", 0.95, 1.1)) == str(result)

    @pytest.mark.asyncio
    async def test_returns_cached(self, tmp_db, tmp_path):
        cache_dir = tmp_path / "audio"
        cache_dir.mkdir()
        h = audio_hash("Hallo", "fake-tts")
        cached_file = cache_dir / f"{h}.mp3"
        cached_file.write_bytes(b"cached data")
        tmp_db.set_audio_cache(h, str(cached_file), "fake-tts")

        tts = FakeTTS()
        result = await get_or_create_audio("Hallo", tts, tmp_db, cache_dir)

        assert result == cached_file
        assert tts.synthesize_called == 0

    @pytest.mark.asyncio
    async def test_other_voice_not_shared(self, tmp_db, tmp_path):
        cache_dir = tmp_path / "audio"
        await get_or_create_audio("Hallo", FakeTTS(name="a"), tmp_db, cache_dir)

        tts = FakeTTS(name="b")
        await get_or_create_audio("Hallo", tts, tmp_db, cache_dir)

        assert tts.synthesize_called == 1
        assert tmp_db.get_audio_cache(audio_hash("Hallo", "a")) is not None
        assert tmp_db.get_audio_cache(audio_hash("Hallo", "b")) is not None

    @pytest.mark.asyncio
    async def test_regenerates_if_file_missing(self, tmp_db, tmp_path):
        cache_dir = tmp_path / "audio"
        h = audio_hash("Hallo", "fake-tts")
        # DB says it's cached, but file doesn't exist
        tmp_db.set_audio_cache(h, str(tmp_path / "nonexistent.mp3"), "fake-tts")

        tts = FakeTTS()
        result = await get_or_create_audio("Hallo", tts, tmp_db, cache_dir)

        assert result is not None
        assert result.exists()
        assert tts.synthesize_called == 1

    @pytest.mark.asyncio
    async def test_tts_failure_returns_none(self, tmp_db, tmp_path):
        tts = FakeTTS(side_effect=RuntimeError("TTS unavailable"))

        result = await get_or_create_audio("Hallo", tts, tmp_db, tmp_path / "audio")

        assert result is None
        assert tmp_db.get_audio_cache(audio_hash("Hallo", "fake-tts")) is None
