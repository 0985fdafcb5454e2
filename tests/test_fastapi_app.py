"""
API tests. The Gemini service is replaced through FastAPI's dependency overrides.
"""

import pytest
from fastapi.testclient import TestClient

import config
import fastapi_app
from errors import ChatError, ImageGenerationError, MissingAPIKeyError, ScriptParseError
from tests.conftest import FakeGeminiService


@pytest.fixture
def service():
    return FakeGeminiService(
        descriptions=["A man stands in a room.", "The door opens."],
        image_results={"The door opens.": ImageGenerationError()},
    )


@pytest.fixture
def api(service, no_pacing):
    fastapi_app.app.dependency_overrides[fastapi_app.get_gemini_service] = lambda: service
    # Background tasks run before TestClient returns, so a run is finished by the next call
    yield TestClient(fastapi_app.app)
    fastapi_app.app.dependency_overrides.clear()


class TestStoryboardEndpoints:
    """Test cases for /storyboards."""

    def test_root(self, api):
        assert api.get("/").json() == {"message": "Storyboard Studio API"}

    @pytest.mark.parametrize("script", ["", "   \n "])
    def test_empty_script_is_rejected(self, api, service, script):
        response = api.post("/storyboards", json={"script": script})

        assert response.status_code == 400
        assert response.json()["detail"] == "Script cannot be empty."
        assert service.calls == []

    def test_run_completes(self, api, service):
        response = api.post("/storyboards", json={"script": "INT. ROOM - DAY. A man stands."})
        assert response.status_code == 202
        run_id = response.json()["run_id"]
        assert response.json()["status"] == "parsing"

        state = api.get(f"/storyboards/{run_id}").json()

        assert state["status"] == "completed"
        assert [s["id"] for s in state["scenes"]] == [0, 1]
        assert state["scenes"][0]["image"].startswith("data:image/jpeg;base64,")
        assert state["scenes"][1]["error"] == ImageGenerationError.default_message
        assert state["scenes"][1]["image"] is None
        assert state["error"] is None

    def test_parse_failure(self, api, service):
        service.parse_error = ScriptParseError()

        run_id = api.post("/storyboards", json={"script": "???"}).json()["run_id"]
        state = api.get(f"/storyboards/{run_id}").json()

        assert state["status"] == "failed"
        assert state["scenes"] == []
        assert state["error"] == ScriptParseError.default_message
        assert service.image_prompts == []

    def test_unknown_run(self, api):
        assert api.get("/storyboards/missing").status_code == 404
        assert api.delete("/storyboards/missing").status_code == 404

    def test_cancel_forgets_the_run(self, api):
        run_id = api.post("/storyboards", json={"script": "A script."}).json()["run_id"]
        run = fastapi_app.storyboard_runs.get(run_id)

        response = api.delete(f"/storyboards/{run_id}")

        assert response.status_code == 200
        assert run.pipeline.cancelled
        assert api.get(f"/storyboards/{run_id}").status_code == 404

    def test_new_run_replaces_the_previous_one(self, api):
        first_id = api.post("/storyboards", json={"script": "First script."}).json()["run_id"]
        second_id = api.post("/storyboards", json={"script": "Second script."}).json()["run_id"]

        assert api.get(f"/storyboards/{first_id}").status_code == 404
        assert api.get(f"/storyboards/{second_id}").json()["status"] == "completed"


class TestChatEndpoints:
    """Test cases for /chat/sessions."""

    def test_create_session(self, api):
        response = api.post("/chat/sessions")

        assert response.status_code == 201
        body = response.json()
        assert body["messages"] == [{"role": "model", "content": config.CHAT_GREETING}]
        assert body["error"] is None

    def test_send_message(self, api, service):
        service.chat_replies = ["Start with the inciting incident."]
        session_id = api.post("/chat/sessions").json()["session_id"]

        response = api.post(f"/chat/sessions/{session_id}/messages", json={"message": "Where do I start?"})

        assert response.status_code == 200
        assert response.json()["messages"][1:] == [
            {"role": "user", "content": "Where do I start?"},
            {"role": "model", "content": "Start with the inciting incident."},
        ]

    def test_empty_message_is_ignored(self, api, service):
        session_id = api.post("/chat/sessions").json()["session_id"]

        response = api.post(f"/chat/sessions/{session_id}/messages", json={"message": "  "})

        assert response.status_code == 200
        assert len(response.json()["messages"]) == 1
        assert service.calls == []

    def test_failed_turn(self, api, service):
        service.chat_replies = [ChatError()]
        session_id = api.post("/chat/sessions").json()["session_id"]

        response = api.post(f"/chat/sessions/{session_id}/messages", json={"message": "Hello?"})

        assert response.status_code == 502
        assert response.json()["detail"] == ChatError.default_message
        messages = api.get(f"/chat/sessions/{session_id}").json()["messages"]
        assert messages[-1] == {"role": "user", "content": "Hello?"}
        assert len(messages) == 2

    def test_empty_message_after_failed_turn(self, api, service):
        service.chat_replies = [ChatError()]
        session_id = api.post("/chat/sessions").json()["session_id"]
        api.post(f"/chat/sessions/{session_id}/messages", json={"message": "Hello?"})

        response = api.post(f"/chat/sessions/{session_id}/messages", json={"message": "   "})

        assert response.status_code == 200
        assert response.json()["error"] is None
        assert len(response.json()["messages"]) == 2

    def test_delete_session(self, api):
        session_id = api.post("/chat/sessions").json()["session_id"]
        assert api.delete(f"/chat/sessions/{session_id}").status_code == 200
        assert api.get(f"/chat/sessions/{session_id}").status_code == 404

    def test_unknown_session(self, api):
        response = api.post("/chat/sessions/missing/messages", json={"message": "Hi"})
        assert response.status_code == 404


class TestStartup:

    def test_missing_api_key_prevents_startup(self, monkeypatch):
        monkeypatch.setattr(config, "GOOGLE_API_KEY", None)
        with pytest.raises(MissingAPIKeyError):
            with TestClient(fastapi_app.app):
                pass

    def test_startup_with_api_key(self, monkeypatch):
        monkeypatch.setattr(config, "GOOGLE_API_KEY", "test-key")
        with TestClient(fastapi_app.app) as client:
            assert client.get("/").status_code == 200
