"""Tests for the control-plane HTTP contract."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from hegelide.controlplane.app import create_app
from hegelide.core.events import ReviewRequested


class TestReviewAccepted:
    def test_returns_success(self, client, review_files) -> None:
        response = client.post("/review", json={"files": review_files})
        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_emits_exactly_one_notification_in_order(self, client, sink, review_files) -> None:
        ordered = [review_files[2], review_files[0], review_files[1]]
        client.post("/review", json={"files": ordered})
        events = sink.of_type(ReviewRequested)
        assert len(events) == 1
        assert list(events[0].files) == ordered

    def test_each_request_is_a_separate_notification(self, client, sink, review_files) -> None:
        client.post("/review", json={"files": review_files[:1]})
        client.post("/review", json={"files": review_files[1:]})
        assert [len(e.files) for e in sink.of_type(ReviewRequested)] == [1, 2]

    def test_json_content_type_on_reply(self, client, review_files) -> None:
        response = client.post("/review", json={"files": review_files})
        assert response.headers["content-type"].startswith("application/json")


class TestReviewRejected:
    def test_missing_files_404(self, client, sink, review_files, tmp_path) -> None:
        gone = str(tmp_path / "gone.md")
        response = client.post("/review", json={"files": [review_files[0], gone]})
        assert response.status_code == 404
        assert response.json() == {"missing": [gone]}
        assert sink.events == []

    @pytest.mark.parametrize(
        ("body", "error"),
        [
            ("{}", "Missing required field: files"),
            ('{"files": "/a.md"}', "files must be an array"),
            ('{"files": []}', "files array cannot be empty"),
            ('{"files": ["/a.md", 3]}', "files[1] must be a string"),
            ("[1, 2]", "Request body must be a JSON object"),
        ],
    )
    def test_validation_errors_400(self, client, sink, body: str, error: str) -> None:
        response = client.post("/review", content=body, headers={"content-type": "application/json"})
        assert response.status_code == 400
        assert response.json() == {"error": error}
        assert sink.events == []

    def test_invalid_json_400(self, client) -> None:
        response = client.post("/review", content="{not json")
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid JSON")

    def test_empty_body_400(self, client) -> None:
        assert client.post("/review").status_code == 400


class TestRouting:
    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH"])
    def test_non_post_on_review_405(self, client, method: str) -> None:
        response = client.request(method, "/review")
        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}

    def test_non_post_checked_before_routing(self, client) -> None:
        response = client.get("/does-not-exist")
        assert response.status_code == 405

    @pytest.mark.parametrize("path", ["/", "/reviews", "/review/extra", "/api/review"])
    def test_unknown_path_404(self, client, path: str) -> None:
        response = client.post(path, json={"files": ["/a.md"]})
        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}

    def test_trailing_slash_is_not_redirected(self, client) -> None:
        response = client.post("/review/", json={"files": ["/a.md"]}, follow_redirects=False)
        assert response.status_code == 404
        assert "location" not in response.headers
        assert response.json() == {"error": "Not found"}

    def test_no_docs_exposed(self, client) -> None:
        assert client.post("/docs").status_code == 404
        assert client.post("/openapi.json").status_code == 404


class TestServerErrors:
    def test_sink_failure_is_500(self, review_files) -> None:
        class BrokenSink:
            def emit(self, event) -> None:
                raise RuntimeError("window destroyed")

        client = TestClient(create_app(BrokenSink()))
        response = client.post("/review", json={"files": review_files})
        assert response.status_code == 500
        assert response.json() == {"error": "window destroyed"}

    def test_filesystem_failure_is_500(self, client, sink) -> None:
        with patch(
            "hegelide.controlplane.app.check_files_exist",
            side_effect=PermissionError("stat denied"),
        ):
            response = client.post("/review", json={"files": ["/a.md"]})
        assert response.status_code == 500
        assert "stat denied" in response.json()["error"]
        assert sink.events == []
