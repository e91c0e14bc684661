"""SQLite schema migrations."""
from __future__ import annotations

import os
import sqlite3
from typing import Iterable

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS candidates (
  candidate_id TEXT PRIMARY KEY,
  username TEXT NOT NULL UNIQUE,
  created_at TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS questions (
  question_id TEXT PRIMARY KEY,
  text TEXT NOT NULL,
  tech_stack TEXT NOT NULL,
  created_by TEXT NOT NULL,
  created_at TEXT NOT NULL
);
""",
    """
CREATE INDEX IF NOT EXISTS ix_questions_tech_stack ON questions (tech_stack);
""",
    """
CREATE TABLE IF NOT EXISTS interview_sessions (
  session_id TEXT PRIMARY KEY,
  candidate_id TEXT NOT NULL,
  tech_stack TEXT NOT NULL,
  status TEXT NOT NULL CHECK (status IN ('pending', 'in-progress', 'completed', 'evaluated')),
  started_at TEXT NOT NULL,
  ended_at TEXT,
  created_at TEXT NOT NULL,
  FOREIGN KEY (candidate_id) REFERENCES candidates (candidate_id)
);
""",
    # At most one pending or in-progress session per candidate.
    """
CREATE UNIQUE INDEX IF NOT EXISTS ux_sessions_active_candidate
  ON interview_sessions (candidate_id)
  WHERE status IN ('pending', 'in-progress');
""",
    """
CREATE TABLE IF NOT EXISTS responses (
  response_id TEXT PRIMARY KEY,
  session_id TEXT NOT NULL,
  question_id TEXT NOT NULL,
  audio_path TEXT NOT NULL,
  transcription TEXT,
  score INTEGER CHECK (score IS NULL OR (score BETWEEN 1 AND 10)),
  justification TEXT,
  created_at TEXT NOT NULL,
  UNIQUE (session_id, question_id),
  CHECK ((score IS NULL) = (justification IS NULL)),
  FOREIGN KEY (session_id) REFERENCES interview_sessions (session_id)
);
""",
]


def migrate(db_path: str = "data/interview.db") -> None:
    """Apply schema migrations to the SQLite database."""

    directory = os.path.dirname(db_path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    from config.settings import settings

    migrate(settings.DB_PATH)
