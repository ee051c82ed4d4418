from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from fakes import FailingRepository, FailingWritesRepository, RecordingRepository, parse_due
from src.task_api.main import create_app


def create_task_payload(
    title="Test Task",
    description="Do something",
    due_date="2024-06-07T15:00:00Z",
    completed=False,
):
    payload = {
        "title": title,
        "description": description,
        "completed": completed,
    }
    if due_date is not None:
        payload["due_date"] = due_date
    return payload


def create_task(client: TestClient, **kwargs) -> dict:
    res = client.post("/tasks", json=create_task_payload(**kwargs))
    assert res.status_code == 201, res.text
    return res.json()


def assert_task_shape(task: dict):
    for key in ["id", "title", "description", "due_date", "completed"]:
        assert key in task
    assert isinstance(task["id"], int)
    assert isinstance(task["title"], str)
    assert isinstance(task["completed"], bool)
    if task["due_date"] is not None:
        parse_due(task["due_date"])


class TestHealth:
    def test_health_check(self, client, settings):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] == settings.persistence_backend


class TestCreateAndGet:
    def test_create_returns_task_with_id(self, client):
        res = client.post("/tasks", json=create_task_payload(title="Buy milk", description=None))
        assert res.status_code == 201
        task = res.json()
        assert_task_shape(task)
        assert task["id"] > 0
        assert task["title"] == "Buy milk"
        assert task["description"] is None
        assert task["completed"] is False
        assert parse_due(task["due_date"]) == parse_due("2024-06-07T15:00:00Z")

    def test_created_id_is_stable_on_get(self, client):
        created = create_task(client, title="Read book")
        res = client.get(f"/tasks/{created['id']}")
        assert res.status_code == 200
        fetched = res.json()
        assert fetched["id"] == created["id"]
        assert fetched["title"] == "Read book"
        assert parse_due(fetched["due_date"]) == parse_due(created["due_date"])

    def test_ids_are_distinct(self, client):
        first = create_task(client, title="One")
        second = create_task(client, title="Two")
        assert first["id"] != second["id"]

    def test_get_not_found(self, client):
        res = client.get("/tasks/999999")
        assert res.status_code == 404
        assert res.text == "id not found"

    def test_get_invalid_id(self, client):
        res = client.get("/tasks/abc")
        assert res.status_code == 400
        assert res.text == "invalid task id"

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    @pytest.mark.parametrize("raw_id", ["99999999999999999999", "9223372036854775808", "-9223372036854775809"])
    def test_out_of_range_id_is_invalid(self, client, method, raw_id):
        res = client.request(method, f"/tasks/{raw_id}", json={"title": "x"} if method == "PUT" else None)
        assert res.status_code == 400
        assert res.text == "invalid task id"

    def test_largest_int64_id_is_not_found(self, client):
        res = client.get("/tasks/9223372036854775807")
        assert res.status_code == 404
        assert res.text == "id not found"


class TestCreateValidation:
    def test_empty_title_rejected(self, client):
        res = client.post("/tasks", json=create_task_payload(title=""))
        assert res.status_code == 400
        assert res.text == "title cannot be empty"

    def test_missing_title_rejected(self, client):
        res = client.post("/tasks", json={"due_date": "2024-06-07T15:00:00Z"})
        assert res.status_code == 400
        assert res.text == "title cannot be empty"

    def test_missing_due_date_rejected(self, client):
        res = client.post("/tasks", json=create_task_payload(due_date=None))
        assert res.status_code == 400
        assert res.text == "missed data field"

    def test_null_due_date_rejected(self, client):
        payload = create_task_payload()
        payload["due_date"] = None
        res = client.post("/tasks", json=payload)
        assert res.status_code == 400
        assert res.text == "missed data field"

    def test_malformed_json_rejected(self, client):
        res = client.post("/tasks", content="{not json", headers={"Content-Type": "application/json"})
        assert res.status_code == 400
        assert res.headers["content-type"].startswith("text/plain")

    @pytest.mark.parametrize("completed", ["yes", "true", 1, 0])
    def test_non_boolean_completed_rejected(self, client, completed):
        res = client.post("/tasks", json=create_task_payload(completed=completed))
        assert res.status_code == 400
        assert res.headers["content-type"].startswith("text/plain")

    @pytest.mark.parametrize("field, value", [("title", 5), ("description", 3.5), ("title", True)])
    def test_non_string_text_fields_rejected(self, client, field, value):
        payload = create_task_payload()
        payload[field] = value
        res = client.post("/tasks", json=payload)
        assert res.status_code == 400

    def test_non_rfc3339_due_date_rejected(self, client):
        res = client.post("/tasks", json=create_task_payload(due_date="2024-06-07"))
        assert res.status_code == 400

    def test_invalid_input_never_reaches_storage(self, settings):
        repo = RecordingRepository()
        client = TestClient(create_app(settings, repository=repo))
        client.post("/tasks", json=create_task_payload(title=""))
        client.post("/tasks", json=create_task_payload(due_date=None))
        assert repo.calls == []


class TestUpdate:
    def test_update_title_only(self, client):
        created = create_task(client, title="Initial", description="A", completed=False)
        res = client.put(f"/tasks/{created['id']}", json={"title": "Updated Task"})
        assert res.status_code == 200
        updated = res.json()
        assert updated["id"] == created["id"]
        assert updated["title"] == "Updated Task"
        assert updated["description"] == "A"
        assert updated["completed"] is False
        assert parse_due(updated["due_date"]) == parse_due(created["due_date"])

        fetched = client.get(f"/tasks/{created['id']}").json()
        assert fetched["title"] == "Updated Task"
        assert fetched["description"] == "A"

    def test_update_all_fields(self, client):
        created = create_task(client)
        patch = {
            "title": "New",
            "description": "B",
            "due_date": "2024-07-01T10:30:00+02:00",
            "completed": True,
        }
        res = client.put(f"/tasks/{created['id']}", json=patch)
        assert res.status_code == 200
        fetched = client.get(f"/tasks/{created['id']}").json()
        assert fetched["title"] == "New"
        assert fetched["description"] == "B"
        assert fetched["completed"] is True
        assert parse_due(fetched["due_date"]) == parse_due("2024-07-01T08:30:00Z")

    def test_unknown_keys_and_wrong_types_ignored(self, client):
        created = create_task(client, title="Keep", completed=False)
        res = client.put(
            f"/tasks/{created['id']}",
            json={"title": 5, "completed": "yes", "due_date": None, "priority": "high"},
        )
        assert res.status_code == 200
        updated = res.json()
        assert updated["title"] == "Keep"
        assert updated["completed"] is False
        assert parse_due(updated["due_date"]) == parse_due(created["due_date"])

    def test_unparsable_due_date_is_server_error(self, client):
        created = create_task(client)
        res = client.put(f"/tasks/{created['id']}", json={"due_date": "not-a-date"})
        assert res.status_code == 500
        assert "not-a-date" in res.text

    def test_malformed_json_rejected(self, client):
        created = create_task(client)
        res = client.put(
            f"/tasks/{created['id']}", content="{oops", headers={"Content-Type": "application/json"}
        )
        assert res.status_code == 400

    def test_non_object_body_rejected(self, client):
        created = create_task(client)
        res = client.put(f"/tasks/{created['id']}", json=["title"])
        assert res.status_code == 400

    def test_update_not_found_checked_before_body(self, client):
        res = client.put("/tasks/424242", content="{oops", headers={"Content-Type": "application/json"})
        assert res.status_code == 404
        assert res.text == "task not found"

    def test_update_invalid_id(self, client):
        res = client.put("/tasks/x1", json={"title": "Nope"})
        assert res.status_code == 400


class TestDelete:
    def test_delete_task(self, client):
        created = create_task(client, title="ToDelete")
        res = client.delete(f"/tasks/{created['id']}")
        assert res.status_code == 200
        assert res.text == ""

        assert client.get(f"/tasks/{created['id']}").status_code == 404
        again = client.delete(f"/tasks/{created['id']}")
        assert again.status_code == 404
        assert again.text == "id not found"

    def test_delete_invalid_id(self, client):
        res = client.delete("/tasks/1.5")
        assert res.status_code == 400


class TestListPaginationFiltering:
    def seed(self, client, count, completed=False, day="2024-06-07"):
        ids = []
        for i in range(count):
            task = create_task(
                client,
                title=f"Task {i}",
                completed=completed,
                due_date=f"{day}T{i % 24:02d}:00:00Z",
            )
            ids.append(task["id"])
        return ids

    def test_empty_store_reports_page_zero(self, client):
        res = client.get("/tasks")
        assert res.status_code == 200
        assert res.json() == {"count_page": 0, "cur_page": 0, "tasks": []}

    def test_two_tasks_fit_one_page(self, client):
        self.seed(client, 2)
        page = client.get("/tasks?limit=10").json()
        assert page["count_page"] == 1
        assert page["cur_page"] == 1
        assert len(page["tasks"]) == 2

    def test_eleven_tasks_make_two_pages(self, client):
        self.seed(client, 11)
        first = client.get("/tasks?limit=10&page=1").json()
        second = client.get("/tasks?limit=10&page=2").json()
        assert first["count_page"] == 2
        assert len(first["tasks"]) == 10
        assert second["cur_page"] == 2
        assert len(second["tasks"]) == 1
        assert second["tasks"][0]["title"] == "Task 10"

    def test_page_beyond_range_is_clamped(self, client):
        self.seed(client, 11)
        page = client.get("/tasks?limit=10&page=7").json()
        assert page["count_page"] == 2
        assert page["cur_page"] == 2
        assert [t["title"] for t in page["tasks"]] == ["Task 10"]

    def test_invalid_limit_and_page_fall_back_to_defaults(self, client):
        self.seed(client, 12)
        for query in (
            "",
            "?limit=abc&page=xyz",
            "?limit=0&page=0",
            "?limit=-3&page=-1",
            "?limit=99999999999999999999&page=99999999999999999999",
        ):
            page = client.get(f"/tasks{query}").json()
            assert page["cur_page"] == 1
            assert page["count_page"] == 2
            assert len(page["tasks"]) == 10

    def test_filter_by_completed_and_date(self, client):
        create_task(client, title="late", completed=True, due_date="2024-06-07T15:00:00Z")
        create_task(client, title="early", completed=True, due_date="2024-06-07T09:00:00Z")
        create_task(client, title="open", completed=False, due_date="2024-06-07T10:00:00Z")
        create_task(client, title="next day", completed=True, due_date="2024-06-08T09:00:00Z")

        res = client.get("/tasks?completed=true&date=2024-06-07&limit=5&page=1")
        assert res.status_code == 200
        page = res.json()
        assert [t["title"] for t in page["tasks"]] == ["early", "late"]
        assert all(t["completed"] is True for t in page["tasks"])
        assert page["count_page"] == 1
        assert page["cur_page"] == 1

    def test_limit_caps_page_size(self, client):
        self.seed(client, 7, completed=True)
        page = client.get("/tasks?completed=true&date=2024-06-07&limit=5&page=1").json()
        assert len(page["tasks"]) == 5
        assert page["count_page"] == 2

    def test_results_ordered_by_due_date(self, client):
        create_task(client, title="c", due_date="2024-06-09T00:00:00Z")
        create_task(client, title="a", due_date="2024-06-07T00:00:00Z")
        create_task(client, title="b", due_date="2024-06-08T00:00:00Z")
        page = client.get("/tasks").json()
        assert [t["title"] for t in page["tasks"]] == ["a", "b", "c"]

    def test_filter_completed_false(self, client):
        self.seed(client, 3, completed=False)
        self.seed(client, 2, completed=True)
        page = client.get("/tasks?completed=false").json()
        assert len(page["tasks"]) == 3
        assert all(t["completed"] is False for t in page["tasks"])

    def test_invalid_completed_flag(self, client):
        res = client.get("/tasks?completed=maybe")
        assert res.status_code == 400
        assert res.text == "invalid completed flag"

    def test_invalid_date_format(self, client):
        res = client.get("/tasks?date=2024/06/07")
        assert res.status_code == 400
        assert res.text == "invalid date format"


class TestStorageFailures:
    def make_client(self, settings):
        return TestClient(create_app(replace(settings, persistence_backend="memory"), repository=FailingRepository()))

    def test_create_storage_failure_is_opaque(self, settings):
        res = self.make_client(settings).post("/tasks", json=create_task_payload())
        assert res.status_code == 500
        assert res.text == "error on server"

    def test_list_storage_failure(self, settings):
        res = self.make_client(settings).get("/tasks")
        assert res.status_code == 500
        assert res.text == "error retrieving tasks"

    def test_get_lookup_failure_is_server_error(self, settings):
        res = self.make_client(settings).get("/tasks/1")
        assert res.status_code == 500
        assert res.text == "error on server"

    def writes_failing_client(self, settings):
        client = TestClient(
            create_app(replace(settings, persistence_backend="memory"), repository=FailingWritesRepository())
        )
        return client, create_task(client)

    def test_update_storage_failure(self, settings):
        client, created = self.writes_failing_client(settings)
        res = client.put(f"/tasks/{created['id']}", json={"title": "New"})
        assert res.status_code == 500
        assert res.text == "error on server"
        assert res.headers["content-type"].startswith("text/plain")

    def test_delete_storage_failure(self, settings):
        client, created = self.writes_failing_client(settings)
        res = client.delete(f"/tasks/{created['id']}")
        assert res.status_code == 500
        assert res.text == "error on server"
        assert res.headers["content-type"].startswith("text/plain")
