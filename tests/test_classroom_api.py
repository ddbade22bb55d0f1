"""Tests for dashboard, student, event and note routes."""

from __future__ import annotations

from models import ClassData, Student


def _add_student(client, name="김하늘", **extra):
    resp = client.post("/api/students", json={"name": name, **extra})
    assert resp.status_code == 201
    return resp.get_json()["student"]


class TestStudentsAPI:
    def test_add_and_list(self, client):
        _add_student(client, "이바다", number=2)
        _add_student(client, "김하늘", number=1)
        students = client.get("/api/students").get_json()["students"]
        assert [s["name"] for s in students] == ["김하늘", "이바다"]

    def test_add_requires_name(self, client):
        resp = client.post("/api/students", json={"name": ""})
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_bad_number(self, client):
        assert client.post("/api/students", json={"name": "김하늘", "number": "셋"}).status_code == 400

    def test_non_object_body(self, client):
        assert client.post("/api/students", json=["김하늘"]).status_code == 400
        assert client.post("/api/students", data="김하늘", content_type="text/plain").status_code == 400

    def test_non_text_name(self, client):
        resp = client.post("/api/students", json={"name": 123})
        assert resp.status_code == 400
        assert client.get("/api/students").get_json()["students"] == []

    def test_stickers(self, client):
        student = _add_student(client)
        resp = client.post(f"/api/students/{student['id']}/stickers", json={"amount": 2})
        assert resp.get_json()["student"]["stickers"] == 2
        resp = client.post(f"/api/students/{student['id']}/stickers", json={"amount": -10})
        assert resp.get_json()["student"]["stickers"] == 0

    def test_stickers_default_to_one(self, client):
        student = _add_student(client)
        resp = client.post(f"/api/students/{student['id']}/stickers", json={})
        assert resp.get_json()["student"]["stickers"] == 1

    def test_stickers_unknown_student(self, client):
        assert client.post("/api/students/nope/stickers", json={"amount": 1}).status_code == 404

    def test_stickers_bad_amount(self, client):
        student = _add_student(client)
        resp = client.post(f"/api/students/{student['id']}/stickers", json={"amount": "many"})
        assert resp.status_code == 400

    def test_delete(self, client):
        student = _add_student(client)
        assert client.delete(f"/api/students/{student['id']}").status_code == 200
        assert client.delete(f"/api/students/{student['id']}").status_code == 404
        assert client.get("/api/students").get_json()["students"] == []


class TestEventsAPI:
    def test_add_and_filter(self, client):
        for day, title in (("2026-03-02", "입학식"), ("2026-03-20", "상담주간"), ("2026-04-15", "중간고사")):
            resp = client.post("/api/events", json={"date": day, "title": title, "type": "event"})
            assert resp.status_code == 201
        assert len(client.get("/api/events").get_json()["events"]) == 3
        march = client.get("/api/events?month=2026-03").get_json()["events"]
        assert [e["title"] for e in march] == ["입학식", "상담주간"]
        day = client.get("/api/events?date=2026-04-15").get_json()["events"]
        assert [e["title"] for e in day] == ["중간고사"]

    def test_invalid_event(self, client):
        assert client.post("/api/events", json={"date": "2026-02-30", "title": "x"}).status_code == 400
        assert client.post("/api/events", json={"date": "2026-03-02", "title": "x", "type": "party"}).status_code == 400
        assert client.post("/api/events", json={"date": "2026-03-02", "title": 123}).status_code == 400
        assert client.post("/api/events", json="2026-03-02").status_code == 400

    def test_bad_month_filter(self, client):
        assert client.get("/api/events?month=March").status_code == 400

    def test_delete(self, client):
        event = client.post("/api/events", json={"date": "2026-03-02", "title": "입학식"}).get_json()["event"]
        assert client.delete(f"/api/events/{event['id']}").status_code == 200
        assert client.delete(f"/api/events/{event['id']}").status_code == 404


class TestNotesAPI:
    def test_empty(self, client):
        assert client.get("/api/notes").get_json() == {"notes": []}


class TestDashboard:
    def test_summary(self, client):
        student = _add_student(client)
        client.post(f"/api/students/{student['id']}/stickers", json={"amount": 5})
        data = client.get("/api/dashboard").get_json()
        assert data["greeting"]
        assert data["summary"]["student_count"] == 1
        assert data["summary"]["top_student"]["stickers"] == 5
        assert data["sync"]["share_code"] is None
        assert data["sync_message"] is None

    def test_root_serves_dashboard(self, client):
        assert client.get("/").status_code == 200

    def test_share_link_connects(self, client, services):
        services.remote.state.store.upsert(
            "푸른하늘-1234",
            ClassData(students=[Student(name="공유학생", number=1)], last_sync="2026-03-02T08:30:00.000Z"),
        )
        data = client.get("/", query_string={"code": "푸른하늘-1234"}).get_json()
        assert data["sync"]["share_code"] == "푸른하늘-1234"
        assert data["summary"]["student_count"] == 1
        assert data["sync_message"]

    def test_unknown_share_link_reported(self, client, services):
        _add_student(client, "로컬학생")
        data = client.get("/", query_string={"code": "없는코드-0000"}).get_json()
        assert data["sync_message"] == "데이터를 찾을 수 없습니다."
        assert data["sync"]["share_code"] is None
        assert data["summary"]["student_count"] == 1

    def test_malformed_share_link_reported(self, client, services):
        services.local_store.set("cloud_storage_푸른하늘-1234", '{"students": ["oops"]}')
        _add_student(client, "로컬학생")
        data = client.get("/", query_string={"code": "푸른하늘-1234"}).get_json()
        assert data["sync_message"].startswith("서버에 연결할 수 없습니다")
        assert data["sync"]["share_code"] is None
        assert data["summary"]["student_count"] == 1
