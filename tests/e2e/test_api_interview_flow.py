import pytest
from fastapi.testclient import TestClient

from api_server import app
from config.settings import settings
from storage.candidates import insert_candidate


@pytest.fixture
def client(monkeypatch, tmp_path, fake_engines):
    monkeypatch.setattr(settings, "APP_CONFIG_PATH", str(tmp_path / "absent.json"))
    with TestClient(app) as test_client:
        yield test_client


def _code(resp) -> str:
    return resp.json()["detail"]["code"]


def test_full_interview_flow(client, candidate, questions, fake_engines):
    transcriber, scorer = fake_engines

    assert client.get("/api/questions/techstacks").json() == {"tech_stacks": ["React"]}
    assert client.get("/api/users/candidates").json() == [{"candidate_id": candidate.candidate_id, "username": "ada"}]

    resp = client.post("/api/interview/start", json={"candidate_id": candidate.candidate_id, "tech_stack": "React"})
    assert resp.status_code == 200, resp.text
    session = resp.json()
    sid = session["session_id"]
    assert session["status"] == "pending"

    again = client.post("/api/interview/start", json={"candidate_id": candidate.candidate_id, "tech_stack": "React"})
    assert again.status_code == 409
    assert _code(again) == "duplicate_active_session"

    active = client.get(f"/api/interview/candidate/{candidate.candidate_id}/active").json()
    assert active["session_id"] == sid

    early = client.post(
        f"/api/interview/{sid}/submit",
        json={"candidate_id": candidate.candidate_id, "question_id": questions[0].question_id, "audio_path": "/a.webm"},
    )
    assert early.status_code == 409
    assert _code(early) == "invalid_transition"

    joined = client.post(f"/api/interview/{sid}/join", json={"candidate_id": candidate.candidate_id})
    assert joined.json()["status"] == "in-progress"

    pool = client.get(f"/api/interview/{sid}/questions").json()
    assert [q["question_id"] for q in pool] == [q.question_id for q in questions]

    for index, question in enumerate(questions, start=1):
        resp = client.post(
            f"/api/interview/{sid}/submit",
            json={
                "candidate_id": candidate.candidate_id,
                "question_id": question.question_id,
                "audio_path": f"/uploads/audio/{sid}_{index}.webm",
            },
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["question_id"] == question.question_id

    dup = client.post(
        f"/api/interview/{sid}/submit",
        json={"candidate_id": candidate.candidate_id, "question_id": questions[0].question_id, "audio_path": "/x.webm"},
    )
    assert dup.status_code == 409
    assert _code(dup) == "duplicate_response"

    not_ready = client.post("/api/interview/evaluate", json={"session_id": sid})
    assert not_ready.status_code == 409
    assert _code(not_ready) == "session_not_ready"

    done = client.post(f"/api/interview/{sid}/complete", json={})
    assert done.json()["status"] == "completed"
    assert done.json()["ended_at"]
    assert client.get(f"/api/interview/candidate/{candidate.candidate_id}/active").json() is None

    result = client.post("/api/interview/evaluate", json={"session_id": sid})
    assert result.status_code == 200, result.text
    body = result.json()
    assert (body["attempted"], body["succeeded"], body["failed"]) == (3, 3, 0)
    assert len(transcriber.calls) == 3 and len(scorer.calls) == 3

    rerun = client.post("/api/interview/evaluate", json={"session_id": sid}).json()
    assert (rerun["attempted"], rerun["skipped"]) == (0, 3)

    evaluated = client.get("/api/interview/list", params={"status": "evaluated"}).json()
    assert [s["session_id"] for s in evaluated] == [sid]

    report = client.get(f"/api/interview/report/{sid}").json()
    assert report["average_score"] == 7.0
    assert [item["state"] for item in report["items"]] == ["evaluated"] * 3

    pdf = client.get(f"/api/interview/report/{sid}/pdf")
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    late = client.post(f"/api/interview/{sid}/transition", json={"action": "complete"})
    assert late.status_code == 409
    assert _code(late) == "invalid_transition"


def test_error_mapping(client, candidate):
    sid = client.post(
        "/api/interview/start", json={"candidate_id": candidate.candidate_id, "tech_stack": "React"}
    ).json()["session_id"]
    stranger = insert_candidate(username="eve")

    forbidden = client.post(f"/api/interview/{sid}/join", json={"candidate_id": stranger.candidate_id})
    assert forbidden.status_code == 403
    assert _code(forbidden) == "not_session_owner"

    reserved = client.post(f"/api/interview/{sid}/transition", json={"action": "evaluate"})
    assert reserved.status_code == 422

    assert client.get("/api/interview/report/missing").status_code == 404
    assert _code(client.post("/api/interview/evaluate", json={"session_id": "missing"})) == "session_not_found"
    assert client.post("/api/interview/start", json={"candidate_id": "ghost", "tech_stack": "Go"}).status_code == 404
    assert client.post("/api/interview/start", json={"candidate_id": candidate.candidate_id, "tech_stack": "  "}).status_code == 422


def test_evaluate_without_responses(client, candidate):
    sid = client.post(
        "/api/interview/start", json={"candidate_id": candidate.candidate_id, "tech_stack": "React"}
    ).json()["session_id"]
    client.post(f"/api/interview/{sid}/join", json={"candidate_id": candidate.candidate_id})
    client.post(f"/api/interview/{sid}/complete", json={"candidate_id": candidate.candidate_id})

    resp = client.post("/api/interview/evaluate", json={"session_id": sid})
    assert resp.status_code == 404
    assert _code(resp) == "no_responses"
    assert client.get("/api/interview/list", params={"status": "completed"}).json()[0]["session_id"] == sid


def test_evaluation_summary_separates_unresolved(client, completed_session, fake_engines):
    session, responses = completed_session()
    transcriber, scorer = fake_engines
    transcriber.fail_on.add(responses[0].audio_path)
    scorer.replies[f"transcript of {responses[1].audio_path}"] = "Score: none\nJustification: Unclear."

    resp = client.post("/api/interview/evaluate", json={"session_id": session.session_id})

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert (body["attempted"], body["succeeded"], body["failed"]) == (3, 1, 2)
    assert (body["unresolved"], body["cancelled"]) == (1, 0)
    outcomes = {item["response_id"]: item["outcome"] for item in body["failures"]}
    assert outcomes == {responses[0].response_id: "failed", responses[1].response_id: "unresolved"}
