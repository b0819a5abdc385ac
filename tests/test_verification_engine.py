"""Tests for the docker verification protocol with a recording runner and mocked HTTP."""

import httpx
import pytest

from devloop.verify.compose import CommandResult
from devloop.verify.engine import VerificationEngine, format_response


class RecordingRunner:
    """Records docker compose invocations; ``stop db`` flips the database off."""

    def __init__(self, returncode: int = 0):
        self.commands = []
        self.db_up = True
        self.returncode = returncode

    def __call__(self, args, cwd):
        self.commands.append(args[2:])
        if args[2:] == ["stop", "db"]:
            self.db_up = False
        return CommandResult(returncode=self.returncode, output=f"ran {' '.join(args)}\n")


def _json(status_code: int, body: bytes) -> httpx.Response:
    return httpx.Response(status_code, content=body, headers={"content-type": "application/json"})


def contract_service(runner: RecordingRunner):
    """A generated service that honours the health contract."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/health":
            status = b"ok" if runner.db_up else b"degraded"
            return _json(200, b'{"status": "' + status + b'"}')
        return _json(404, b'{"error": "not found"}')

    return handler


@pytest.fixture
def compose_dir(tmp_path):
    (tmp_path / "docker-compose.yml").write_text("services:\n  api: {}\n  db: {}\n")
    return tmp_path


def _engine(runner, handler, sleeps=None, attempts=30):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return VerificationEngine(
        runner=runner,
        client=client,
        sleep=(sleeps.append if sleeps is not None else lambda seconds: None),
        health_attempts=attempts,
    )


class TestHappyPath:
    def test_passes_with_full_evidence(self, compose_dir):
        runner = RecordingRunner()
        doc = _engine(runner, contract_service(runner)).run(compose_dir)

        assert doc.result == "pass"
        transcript = doc.transcript()
        assert "HTTP/1.1 200" in transcript
        assert '"status": "ok"' in transcript
        assert '"status": "degraded"' in transcript
        assert "HTTP/1.1 404" in transcript

    def test_protocol_order(self, compose_dir):
        runner = RecordingRunner()
        _engine(runner, contract_service(runner)).run(compose_dir)

        assert runner.commands == [["up", "-d", "--build"], ["stop", "db"], ["down", "-v"]]

    def test_render_ends_with_result_line(self, compose_dir):
        runner = RecordingRunner()
        rendered = _engine(runner, contract_service(runner)).run(compose_dir).render()

        lines = rendered.rstrip("\n").splitlines()
        assert lines[0] == "mode: docker"
        assert lines[-1] == "result: pass"
        assert lines.index("## Cleanup") > lines.index("## /nope (404 JSON)")

    def test_compose_errors_do_not_abort(self, compose_dir):
        runner = RecordingRunner(returncode=1)
        doc = _engine(runner, contract_service(runner)).run(compose_dir)

        assert doc.result == "pass"
        assert ["down", "-v"] in runner.commands


class TestHealthTimeout:
    def test_never_healthy_fails_and_short_circuits(self, compose_dir):
        runner = RecordingRunner()
        sleeps = []
        calls = []

        def refuse(request):
            calls.append(request.url.path)
            raise httpx.ConnectError("connection refused", request=request)

        doc = _engine(runner, refuse, sleeps=sleeps).run(compose_dir)
        rendered = doc.render()

        assert doc.result == "fail"
        assert rendered.rstrip().splitlines()[-1] == "result: fail"
        assert len(calls) == 30
        assert sleeps == [1.0] * 29
        assert "## Stop DB" not in rendered
        assert "404" not in rendered
        assert "health endpoint not reachable after waiting" in rendered
        assert runner.commands == [["up", "-d", "--build"], ["logs", "--no-color"], ["down", "-v"]]

    def test_server_errors_keep_polling(self, compose_dir):
        runner = RecordingRunner()
        responses = iter([_json(503, b"{}"), _json(503, b"{}")])

        def flaky(request):
            if request.url.path == "/health":
                early = next(responses, None)
                if early is not None:
                    return early
            return contract_service(runner)(request)

        sleeps = []
        doc = _engine(runner, flaky, sleeps=sleeps).run(compose_dir)

        assert doc.result == "pass"
        assert len(sleeps) == 2


class TestVerdict:
    def test_no_degradation_fails(self, compose_dir):
        runner = RecordingRunner()

        def always_ok(request):
            if request.url.path == "/health":
                return _json(200, b'{"status": "ok"}')
            return _json(404, b'{"error": "not found"}')

        doc = _engine(runner, always_ok).run(compose_dir)

        assert doc.result == "fail"
        assert ["down", "-v"] in runner.commands

    def test_html_404_still_counts_as_404(self, compose_dir):
        # Evidence is a status-line pattern; the JSON body is not inspected.
        runner = RecordingRunner()

        def html_404(request):
            if request.url.path == "/health":
                return contract_service(runner)(request)
            return httpx.Response(404, text="<h1>Not Found</h1>")

        assert _engine(runner, html_404).run(compose_dir).result == "pass"

    def test_crashing_service_after_stop_fails(self, compose_dir):
        runner = RecordingRunner()

        def dies_with_db(request):
            if not runner.db_up:
                raise httpx.ReadError("connection reset", request=request)
            return contract_service(runner)(request)

        doc = _engine(runner, dies_with_db).run(compose_dir)

        assert doc.result == "fail"
        assert "probe error" in doc.transcript()


class TestResourceSafety:
    def test_missing_compose_file_fails_without_starting(self, tmp_path):
        runner = RecordingRunner()
        doc = _engine(runner, contract_service(runner)).run(tmp_path)

        assert doc.result == "fail"
        assert runner.commands == []
        assert "reason: missing docker-compose.yml" in doc.render()

    def test_compose_yaml_variant_accepted(self, tmp_path):
        (tmp_path / "compose.yaml").write_text("services: {}\n")
        runner = RecordingRunner()

        assert _engine(runner, contract_service(runner)).run(tmp_path).result == "pass"

    def test_unexpected_request_exception_fails_and_tears_down(self, compose_dir):
        runner = RecordingRunner()

        def boom(request):
            raise RuntimeError("unexpected")

        doc = _engine(runner, boom).run(compose_dir)

        assert doc.result == "fail"
        assert runner.commands[-1] == ["down", "-v"]

    def test_malformed_health_url_fails_without_raising(self, compose_dir):
        runner = RecordingRunner()
        engine = VerificationEngine(
            health_path="health",
            runner=runner,
            client=httpx.Client(transport=httpx.MockTransport(contract_service(runner))),
            sleep=lambda seconds: None,
        )

        doc = engine.run(compose_dir)

        assert doc.result == "fail"
        assert "health endpoint not reachable after waiting" in doc.transcript()
        assert runner.commands[-1] == ["down", "-v"]

    def test_capture_records_any_exception(self):
        def broken_stream(request):
            raise httpx.StreamConsumed()

        client = httpx.Client(transport=httpx.MockTransport(broken_stream))
        text = VerificationEngine().capture(client, "http://127.0.0.1:3000/nope")

        assert text.startswith("probe error: http://127.0.0.1:3000/nope: StreamConsumed(")


class TestFormatResponse:
    def test_curl_style_status_line(self):
        response = httpx.Response(
            404,
            content=b'{"error": "not found"}',
            headers={"content-type": "application/json"},
            request=httpx.Request("GET", "http://127.0.0.1:3000/nope"),
        )
        text = format_response(response)
        assert text.splitlines()[0] == "HTTP/1.1 404 Not Found"
        assert "content-type: application/json" in text
        assert text.endswith('{"error": "not found"}')
