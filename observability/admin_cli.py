"""Lightweight CLI for inspecting sessions and running evaluations."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from config.settings import settings
from services.errors import InterviewError
from storage.migrate import migrate
from storage.models import SessionStatus


def tail_sessions(limit: int = 20, status: str | None = None) -> None:
    from services.lifecycle import sessions

    for record in sessions(SessionStatus(status) if status else None)[:limit]:
        print(
            f"[{record.created_at}] {record.session_id} candidate={record.candidate_id} "
            f"stack={record.tech_stack} status={record.status.value} ended={record.ended_at or '-'}"
        )


def show_report(session_id: str) -> None:
    from session_reports import get_report

    report = get_report(session_id)
    meta = report.session
    print(f"{meta.session_id} {meta.candidate} [{meta.tech_stack}] status={meta.status.value}")
    for index, item in enumerate(report.items, start=1):
        score = item.score if item.score is not None else "pending"
        print(f"  Q{index} ({item.state}) score={score} :: {item.question}")
    if report.average_score is not None:
        print(f"  average={report.average_score:.1f}")


def evaluate(session_id: str, config_path: str) -> None:
    from engines import bind_defaults
    from services.evaluation import evaluate_session

    bind_defaults(Path(config_path))
    summary = evaluate_session(session_id)
    print(
        f"{session_id}: attempted={summary.attempted} succeeded={summary.succeeded} "
        f"failed={summary.failed} skipped={summary.skipped}"
    )
    for item in summary.failures:
        print(f"  {item.response_id} {item.outcome}: {item.reason}")


def export_pdf(session_id: str, target: str) -> None:
    from session_reports import get_report, render_report_pdf

    Path(target).write_bytes(render_report_pdf(get_report(session_id)))
    print(f"wrote {target}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tail-sessions", type=int, help="Show the latest sessions")
    parser.add_argument("--status", choices=[status.value for status in SessionStatus], help="Filter --tail-sessions")
    parser.add_argument("--report", metavar="SESSION_ID", help="Print a session report")
    parser.add_argument("--pdf", nargs=2, metavar=("SESSION_ID", "PATH"), help="Write a session report PDF")
    parser.add_argument("--evaluate", metavar="SESSION_ID", help="Run the evaluation pipeline for a session")
    parser.add_argument("--config", default=settings.APP_CONFIG_PATH, help="App config with LLM routes")
    args = parser.parse_args(argv)

    migrate(settings.DB_PATH)
    try:
        if args.tail_sessions:
            tail_sessions(args.tail_sessions, args.status)
        if args.report:
            show_report(args.report)
        if args.pdf:
            export_pdf(*args.pdf)
        if args.evaluate:
            evaluate(args.evaluate, args.config)
    except InterviewError as exc:
        print(f"error [{exc.code}]: {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
