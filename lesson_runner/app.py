"""FastAPI application with all routes."""
from __future__ import annotations

import asyncio
import logging

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request

from lesson_runner.config import Settings, load_settings, save_settings
from lesson_runner.content import LessonContent
from lesson_runner.db import Database
from lesson_runner.gate import QUIZ_SETS, LessonSession
from lesson_runner.models import Mode
from lesson_runner.progress import ProgressStore
from lesson_runner.providers.base import SpeechEngine
from lesson_runner.quiz import parse_listening_key
from lesson_runner.speech import SpeechQueueController

app = FastAPI(title="Lesson Runner")

# Global state (initialized in startup)
_db: Database | None = None
_settings: Settings | None = None
_session: LessonSession | None = None

_bg_tasks: set[asyncio.Task] = set()
_log = logging.getLogger("lesson_runner.app")


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def get_session() -> LessonSession:
    assert _session is not None
    return _session


def _make_tts(voice: str | None):
    s = get_settings()
    if s.tts_provider == "edge-tts":
        from lesson_runner.providers.tts_edge import EdgeTTSProvider
        return EdgeTTSProvider(voice=voice or s.tts_voice)
    elif s.tts_provider == "piper":
        from lesson_runner.providers.tts_piper import PiperTTSProvider
        return PiperTTSProvider(model=voice or s.tts_voice)
    raise ValueError(f"Unknown TTS provider: {s.tts_provider}")


def _build_engine(s: Settings, db: Database) -> SpeechEngine:
    from lesson_runner.providers.engine import SynthesisSpeechEngine
    return SynthesisSpeechEngine(
        tts_factory=_make_tts,
        db=db,
        cache_dir=s.audio_cache_full_path,
        player_command=s.player_args,
    )


def build_session(s: Settings, db: Database, engine: SpeechEngine | None) -> LessonSession:
    content = LessonContent.from_file(s.day_plans_full_path)
    store = ProgressStore(db, key=s.progress_key)
    speech = SpeechQueueController(
        engine,
        target_language=s.target_language,
        rate=s.speech_rate,
        pitch=s.speech_pitch,
        flush_fallback_delay=s.flush_fallback_ms / 1000,
    )
    if not speech.supported:
        _log.warning("Speech playback unavailable; narration disabled")
    return LessonSession(content, store, speech)


@app.on_event("startup")
async def startup():
    global _db, _settings, _session
    if _session is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _db = Database(_settings.db_full_path)
    engine = _build_engine(_settings, _db)
    _session = build_session(_settings, _db, engine)
    if _session.speech.supported:
        task = asyncio.create_task(engine.refresh_voices())
        _bg_tasks.add(task)
        task.add_done_callback(_bg_tasks.discard)


@app.on_event("shutdown")
async def shutdown():
    if _session is not None:
        _session.stop_speech()
    if _db:
        _db.close()


# ── Serialization ─────────────────────────────────────────────────────────

def _quiz_view(session: LessonSession, quiz_set: str) -> dict:
    scorer = session.quiz(quiz_set)
    return {
        "correct_count": scorer.correct_count,
        "total": scorer.total,
        "score": scorer.score(),
    }


def _state() -> dict:
    session = get_session()
    return {
        "progress": session.progress.to_dict(),
        "day": session.day,
        "completed": session.completed,
        "can_go_back": session.can_go_back,
        "can_go_forward": session.can_go_forward,
        "quizzes": {name: _quiz_view(session, name) for name in QUIZ_SETS},
        "output_text": session.output_text,
        "output_report": session.output_report.to_dict() if session.output_report else None,
        "verdict": session.verdict.to_dict() if session.verdict else None,
        "speech": session.speech.status(),
    }


def _questions(session: LessonSession, quiz_set: str, items: list[tuple[str, object]]) -> list[dict]:
    answered = session.quiz(quiz_set).answered
    out = []
    for key, (raw_key, q) in items:
        chosen = answered.get(raw_key)
        out.append({
            "key": key,
            "prompt": q.prompt,
            "choices": q.choices,
            "chosen": chosen,
            # Reveal the answer only once the question is locked
            "correct_choice": q.correct_choice if chosen is not None else None,
        })
    return out


# ── API: Progress ─────────────────────────────────────────────────────────

@app.get("/api/state")
async def api_state():
    return _state()


@app.post("/api/mode")
async def api_mode(request: Request):
    body = await request.json()
    try:
        mode = Mode(body.get("mode"))
    except ValueError:
        raise HTTPException(400, f"Unknown mode: {body.get('mode')}")
    get_session().set_mode(mode)
    return _state()


@app.post("/api/day")
async def api_day(request: Request):
    body = await request.json()
    day = body.get("day")
    if not isinstance(day, int):
        raise HTTPException(400, "day must be an integer")
    session = get_session()
    if not session.go_to_day(day):
        raise HTTPException(409, {
            "message": f"Day {day} is locked",
            "progress": session.progress.to_dict(),
        })
    return _state()


@app.post("/api/reset")
async def api_reset():
    get_session().reset()
    return _state()


# ── API: Lesson content ───────────────────────────────────────────────────

@app.get("/api/day-plan")
async def api_day_plan():
    session = get_session()
    plan = session.plan
    if plan is None:
        return {"day": session.day, "completed": True}

    vocab_items = [(str(i), (i, q)) for i, q in enumerate(plan.vocab_quiz)]
    grammar_items = [(str(i), (i, q)) for i, q in enumerate(plan.grammar.quiz)]
    listening_items = [(item.key_str, (item.key, item.question)) for item in session.listening_items]

    return {
        "day": plan.day,
        "completed": False,
        "mode": session.progress.mode.value,
        "topic": plan.topic,
        "vocabulary": [{"term": v.term, "gloss": v.gloss} for v in plan.vocabulary],
        "grammar": {
            "title": plan.grammar.title,
            "rules": plan.grammar.rules,
            "examples": plan.grammar.examples,
        },
        "listening": [
            {"index": i, "id": s.id, "title": s.title, "repeat": s.repeat_count}
            for i, s in enumerate(plan.listening)
        ],
        "output_prompt": plan.output_prompt,
        "quizzes": {
            "vocab": _questions(session, "vocab", vocab_items),
            "grammar": _questions(session, "grammar", grammar_items),
            "listening": _questions(session, "listening", listening_items),
        },
        "transcript": session.transcript(),
    }


# ── API: Quizzes ──────────────────────────────────────────────────────────

@app.post("/api/quiz/{quiz_set}/answer")
async def api_quiz_answer(quiz_set: str, request: Request):
    if quiz_set not in QUIZ_SETS:
        raise HTTPException(404, f"Unknown quiz: {quiz_set}")
    body = await request.json()
    raw_key = str(body.get("key", ""))
    choice = body.get("choice")
    if not isinstance(choice, str):
        raise HTTPException(400, "choice must be a string")

    if quiz_set == "listening":
        key = parse_listening_key(raw_key)
    else:
        try:
            key = int(raw_key)
        except ValueError:
            key = None

    session = get_session()
    scorer = session.quiz(quiz_set)
    question = scorer.question(key) if key is not None else None
    if question is None:
        raise HTTPException(404, f"Unknown question: {raw_key}")
    if scorer.is_answered(key):
        raise HTTPException(409, "Question already answered")

    correct = session.answer(quiz_set, key, choice)
    return {
        "correct": correct,
        "correct_choice": question.correct_choice,
        **_quiz_view(session, quiz_set),
        "transcript_visible": session.transcript_visible,
    }


# ── API: Writing ──────────────────────────────────────────────────────────

@app.put("/api/output")
async def api_output(request: Request):
    body = await request.json()
    text = body.get("text", "")
    if not isinstance(text, str):
        raise HTTPException(400, "text must be a string")
    get_session().output_text = text
    return {"ok": True}


@app.post("/api/output/check")
async def api_output_check():
    report = get_session().check_output()
    if report is None:
        raise HTTPException(409, "No lesson for the current day")
    return report.to_dict()


@app.post("/api/evaluate")
async def api_evaluate():
    session = get_session()
    verdict = session.evaluate_and_advance()
    if verdict is None:
        raise HTTPException(409, "No lesson for the current day")
    return {**_state(), "verdict": verdict.to_dict()}


# ── API: Listening playback ───────────────────────────────────────────────

@app.post("/api/listening/play")
async def api_listening_play(request: Request):
    body = await request.json() if await request.body() else {}
    segment = body.get("segment")
    session = get_session()
    if segment is None:
        started = session.play_lesson()
    else:
        plan = session.plan
        if plan is None or not isinstance(segment, int) or not 0 <= segment < len(plan.listening):
            raise HTTPException(404, f"Unknown segment: {segment}")
        started = session.play_segment(segment)
    return {"started": started, **session.speech.status()}


@app.post("/api/listening/stop")
async def api_listening_stop():
    session = get_session()
    session.stop_speech()
    return session.speech.status()


# ── API: Voices ───────────────────────────────────────────────────────────

@app.get("/api/voices")
async def api_voices():
    speech = get_session().speech
    return {
        "supported": speech.supported,
        "selected": speech.voice.id if speech.voice else None,
        "voices": [{"id": v.id, "name": v.name, "lang": v.lang} for v in speech.voices],
    }


@app.put("/api/voice")
async def api_voice(request: Request):
    body = await request.json()
    speech = get_session().speech
    if "voice" in body and not speech.select_voice(str(body["voice"])):
        raise HTTPException(404, f"Unknown voice: {body['voice']}")
    if "rate" in body:
        speech.rate = body["rate"]
    if "pitch" in body:
        speech.pitch = body["pitch"]
    return speech.status()


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    body = await request.json()
    s = get_settings()
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    for k, v in body.items():
        if k in known:
            setattr(s, k, v)
    save_settings(s)
    return s.to_dict()
