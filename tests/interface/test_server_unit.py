from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from hashcards.application.collection import Collection, parse_cards
from hashcards.application.session import DrillSession
from hashcards.application.session_builder import SessionOptions, build_session
from hashcards.consts import VERSION
from hashcards.domain.errors import StoreError
from hashcards.domain.models import AnswerControls, CardState, ReviewRecord
from hashcards.server import create_app


@pytest.fixture
def make_client(memory_store, now):
    def _make(cards, records=None, controls=AnswerControls.FULL, **options):
        for fp, record in (records or {}).items():
            memory_store.put(fp, record)
        collection = Collection(root=None, cards=cards)
        session_options = SessionOptions(now=now, **options)
        plan = build_session(collection, dict(memory_store.iter_all()), session_options)
        session = DrillSession(
            collection=collection,
            store=memory_store,
            plan=plan,
            options=session_options,
            controls=controls,
        )
        return TestClient(create_app(session)), session

    return _make


def _basics(count):
    return [
        parse_cards(f"Q: question {n}\nA: answer {n}", source="a.md", deck="a")[0]
        for n in range(count)
    ]


def _due_review(now, interval=timedelta(days=10), ease=2.5):
    return ReviewRecord(
        state=CardState.REVIEW,
        due=now,
        interval=interval,
        ease=ease,
        reps=3,
        last_reviewed=now - interval,
    )


COMPLETED_EMPTY = {
    "kind": "completed",
    "stats": {"answered": 0, "remaining": 0, "new_answered": 0},
}


def test_empty_collection_is_completed(make_client):
    client, _ = make_client([])
    with client:
        response = client.get("/api/card")
        assert response.status_code == 200
        assert response.json() == COMPLETED_EMPTY

        page = client.get("/")
        assert page.status_code == 200
        assert "Nothing to drill" in page.text
        assert VERSION in page.text


def test_drill_page_and_static_assets(make_client):
    client, _ = make_client(_basics(1))
    with client:
        page = client.get("/")
        assert page.status_code == 200
        assert "/static/script.js" in page.text
        assert 'data-controls="full"' in page.text

        assert client.get("/static/script.js").status_code == 200
        assert client.get("/static/style.css").status_code == 200


def test_drill_page_loads_math_and_code_renderers(make_client):
    client, _ = make_client(_basics(1), controls=AnswerControls.BINARY)
    with client:
        page = client.get("/")
        assert page.headers["content-type"].startswith("text/html")
        assert "katex.min.js" in page.text
        assert "katex.min.css" in page.text
        assert "highlight.min.js" in page.text
        assert 'data-controls="binary"' in page.text
        assert f"hashcards v{VERSION}" in page.text


def test_one_new_card_good(make_client, memory_store, now):
    cards = _basics(1)
    client, _ = make_client(cards)
    with client:
        card = client.get("/api/card").json()
        assert card["kind"] == "card"
        assert card["fingerprint"] == cards[0].fingerprint
        assert card["is_new"] is True
        assert card["front"] == "<p>question 0</p>"
        assert card["grades"] == ["again", "hard", "good", "easy"]

        response = client.post(
            "/api/answer", json={"fingerprint": card["fingerprint"], "grade": "good"}
        )
        assert response.status_code == 200
        assert response.json() == {
            "kind": "completed",
            "stats": {"answered": 1, "remaining": 0, "new_answered": 1},
        }

        record = memory_store.get(cards[0].fingerprint)
        assert record.state is CardState.LEARNING
        assert record.reps == 0
        assert record.due == now + timedelta(minutes=1)


def test_review_card_good(make_client, memory_store, now):
    cards = _basics(1)
    client, _ = make_client(cards, {cards[0].fingerprint: _due_review(now)})
    with client:
        card = client.get("/api/card").json()
        assert card["is_new"] is False
        client.post("/api/answer", json={"fingerprint": card["fingerprint"], "grade": "good"})

        record = memory_store.get(cards[0].fingerprint)
        assert record.interval == timedelta(days=25)
        assert record.ease == 2.5
        assert record.due == now + timedelta(days=25)


def test_buried_sibling_is_not_drilled(make_client, memory_store, now):
    cards = parse_cards("C: [Paris] is the capital of [France].", source="geo.md", deck="geo")
    records = {c.fingerprint: _due_review(now) for c in cards}
    client, _ = make_client(cards, records, bury_siblings=True)
    with client:
        card = client.get("/api/card").json()
        sibling = next(c.fingerprint for c in cards if c.fingerprint != card["fingerprint"])

        client.post("/api/answer", json={"fingerprint": card["fingerprint"], "grade": "good"})

        assert client.get("/api/card").json()["kind"] == "completed"
        assert memory_store.get(sibling) == records[sibling]


def test_card_limit(make_client):
    client, _ = make_client(_basics(10), card_limit=2)
    with client:
        for _ in range(2):
            card = client.get("/api/card").json()
            assert card["kind"] == "card"
            client.post("/api/answer", json={"fingerprint": card["fingerprint"], "grade": "easy"})

        response = client.get("/api/card").json()
        assert response["kind"] == "completed"
        assert response["stats"]["answered"] == 2


def test_stale_answer_conflicts(make_client, memory_store):
    client, session = make_client(_basics(3))
    with client:
        head = client.get("/api/card").json()["fingerprint"]
        stale = session.queue[2]

        response = client.post("/api/answer", json={"fingerprint": stale, "grade": "good"})
        assert response.status_code == 409
        assert "error" in response.json()

        assert client.get("/api/card").json()["fingerprint"] == head
        assert client.get("/api/progress").json() == {
            "answered": 0,
            "remaining": 3,
            "new_answered": 0,
        }
        assert memory_store.get(stale) is None


def test_unknown_grade_is_bad_request(make_client):
    client, _ = make_client(_basics(1))
    with client:
        head = client.get("/api/card").json()["fingerprint"]
        response = client.post("/api/answer", json={"fingerprint": head, "grade": "perfect"})
        assert response.status_code == 400
        assert "unknown grade" in response.json()["error"]


def test_malformed_body_is_bad_request(make_client):
    client, _ = make_client(_basics(1))
    with client:
        response = client.post("/api/answer", json={"grade": "good"})
        assert response.status_code == 400


def test_binary_controls(make_client):
    client, _ = make_client(_basics(1), controls=AnswerControls.BINARY)
    with client:
        assert client.get("/api/card").json()["grades"] == ["again", "good"]


def test_skip_and_undo(make_client):
    client, session = make_client(_basics(2))
    with client:
        first = client.get("/api/card").json()["fingerprint"]
        skipped = client.post("/api/skip").json()
        assert skipped["fingerprint"] != first

        assert client.post("/api/undo").status_code == 409

        client.post("/api/answer", json={"fingerprint": skipped["fingerprint"], "grade": "good"})
        undone = client.post("/api/undo").json()
        assert undone["fingerprint"] == skipped["fingerprint"]
        assert session.answered == 0


def test_store_failure_returns_error_id(make_client, memory_store):
    client, session = make_client(_basics(2))
    failing = MagicMock(wraps=memory_store)
    failing.put.side_effect = StoreError("disk I/O error")
    session.store = failing
    with client:
        head = client.get("/api/card").json()["fingerprint"]
        response = client.post("/api/answer", json={"fingerprint": head, "grade": "good"})
        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "internal error"
        assert len(body["id"]) == 26

        # The server stays up and the session is unchanged.
        assert client.get("/api/card").json()["fingerprint"] == head


def test_shutdown_closes_store(make_client, memory_store):
    client, _ = make_client([])
    with client:
        pass
    with pytest.raises(StoreError, match="closed"):
        memory_store.get("x")
