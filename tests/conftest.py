import os
import sys
import tempfile
from pathlib import Path
from typing import Callable, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config.registry import SCORER_KEY, TRANSCRIBER_KEY, bind_model, unbind_model
from config.settings import settings
from services import lifecycle
from storage.candidates import insert_candidate
from storage.migrate import migrate
from storage.questions import insert_question
from fakes import FakeScorer, FakeTranscriber


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        unbind_model(TRANSCRIBER_KEY)
        unbind_model(SCORER_KEY)
        td.cleanup()


@pytest.fixture
def fake_engines():
    transcriber = FakeTranscriber()
    scorer = FakeScorer()
    bind_model(TRANSCRIBER_KEY, transcriber)
    bind_model(SCORER_KEY, scorer)
    return transcriber, scorer


@pytest.fixture
def candidate():
    return insert_candidate(username="ada")


@pytest.fixture
def questions():
    return [
        insert_question(text=f"React question {index}", tech_stack="React", created_by="admin")
        for index in range(1, 4)
    ]


@pytest.fixture
def completed_session(candidate, questions) -> Callable[..., tuple]:
    """Factory: session walked to ``completed`` with one response per question."""

    def _make(count: int = 3, *, username: Optional[str] = None):
        owner = insert_candidate(username=username) if username else candidate
        session = lifecycle.start_session(owner.candidate_id, "React")
        lifecycle.transition_session(session.session_id, "join", candidate_id=owner.candidate_id)
        responses = [
            lifecycle.record_response(
                session.session_id,
                owner.candidate_id,
                question.question_id,
                f"/uploads/audio/{session.session_id}_{index}.webm",
            )
            for index, question in enumerate(questions[:count], start=1)
        ]
        lifecycle.transition_session(session.session_id, "complete", candidate_id=owner.candidate_id)
        return session, responses

    return _make
