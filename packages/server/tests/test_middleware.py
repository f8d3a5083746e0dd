"""
Input sanitization tests.
"""

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from taskflow.core.middleware import SanitizeInputMiddleware, sanitize_string, sanitize_value


class TestSanitizeString:
    def test_strips_tags(self):
        assert sanitize_string("<b>Acme</b> Corp") == "Acme Corp"

    def test_script_tag_removed(self):
        cleaned = sanitize_string("<script>alert(1)</script>Acme")
        assert "<script>" not in cleaned
        assert cleaned.endswith("Acme")

    def test_plain_text_untouched(self):
        assert sanitize_string("Smith & Sons") == "Smith & Sons"


class TestSanitizeValue:
    def test_recurses_into_lists_and_dicts(self):
        body = {
            "name": "<i>Org</i>",
            "invitations": [{"email": "a@example.com", "role": "<b>member</b>"}],
            "count": 3,
        }
        assert sanitize_value(body) == {
            "name": "Org",
            "invitations": [{"email": "a@example.com", "role": "member"}],
            "count": 3,
        }

    def test_secrets_left_alone(self):
        body = {"password": "p<a>ss</a>word", "token": "<abc>"}
        assert sanitize_value(body) == body


def _echo_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(SanitizeInputMiddleware)

    @app.post("/echo")
    async def echo(request: Request):
        return await request.json()

    return app


class TestSanitizeInputMiddleware:
    def test_json_body_rewritten(self):
        client = TestClient(_echo_app())
        resp = client.post("/echo", json={"name": "<img src=x onerror=alert(1)>Team"})
        assert resp.status_code == 200
        assert resp.json() == {"name": "Team"}

    def test_non_json_body_passes_through(self):
        app = FastAPI()
        app.add_middleware(SanitizeInputMiddleware)

        @app.post("/raw")
        async def raw(request: Request):
            return {"body": (await request.body()).decode()}

        client = TestClient(app)
        resp = client.post("/raw", content=b"<b>x</b>", headers={"Content-Type": "text/plain"})
        assert resp.json() == {"body": "<b>x</b>"}

    def test_malformed_json_reaches_handler_unchanged(self):
        app = FastAPI()
        app.add_middleware(SanitizeInputMiddleware)

        @app.post("/raw")
        async def raw(request: Request):
            return {"body": (await request.body()).decode()}

        client = TestClient(app)
        resp = client.post(
            "/raw", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert resp.json() == {"body": "{not json"}
