"""Verification engine — black-box smoke test of the generated service under docker.

Protocol, in order, with every step's output appended to the document:

1. ``docker compose up -d --build``
2. poll the health endpoint until it answers (bounded; short-circuits to fail)
3. probe health with the database up (expect 200 / "ok")
4. ``docker compose stop db``
5. probe health with the database down (expect 200 / "degraded")
6. probe an undefined route (expect a JSON 404)
7. ``docker compose down -v``, on every exit path

The verdict comes from evidence patterns over the transcript (see evidence.py).
"""

import logging
import time
from datetime import datetime
from pathlib import Path

import httpx
from tenacity import Retrying, retry_if_result, stop_after_attempt, wait_fixed

from devloop.verify.compose import ComposeStack, find_compose_file, run_command
from devloop.verify.document import VerifyDocument
from devloop.verify.evidence import derive_verdict, missing_evidence

logger = logging.getLogger(__name__)


def format_response(response: httpx.Response) -> str:
    """Render a response the way ``curl -i`` prints it."""
    lines = [f"{response.http_version} {response.status_code} {response.reason_phrase}".rstrip()]
    lines.extend(f"{name}: {value}" for name, value in response.headers.items())
    lines.append("")
    lines.append(response.text)
    return "\n".join(lines)


class VerificationEngine:
    def __init__(
        self,
        port: int = 3000,
        health_path: str = "/health",
        missing_path: str = "/nope",
        health_attempts: int = 30,
        health_interval: float = 1.0,
        probe_timeout: float = 2.0,
        db_service: str = "db",
        runner=run_command,
        client: httpx.Client | None = None,
        sleep=time.sleep,
    ):
        self.base_url = f"http://127.0.0.1:{port}"
        self.health_path = health_path
        self.missing_path = missing_path
        self.health_attempts = health_attempts
        self.health_interval = health_interval
        self.probe_timeout = probe_timeout
        self.db_service = db_service
        self._runner = runner
        self._client = client
        self._sleep = sleep

    @classmethod
    def from_config(cls, verify_config: dict) -> "VerificationEngine":
        keys = ("port", "health_path", "missing_path", "health_attempts",
                "health_interval", "probe_timeout", "db_service")
        return cls(**{k: verify_config[k] for k in keys if k in verify_config})

    def run(self, service_dir: Path) -> VerifyDocument:
        service_dir = Path(service_dir)
        doc = VerifyDocument(mode="docker")
        doc.append(f"started_at: {datetime.now().astimezone().isoformat(timespec='seconds')}", "")

        if find_compose_file(service_dir) is None:
            doc.append("reason: missing docker-compose.yml")
            return doc.finish("fail")

        client = self._client or httpx.Client(timeout=self.probe_timeout)
        try:
            return self._run_protocol(service_dir, doc, client)
        finally:
            if self._client is None:
                client.close()

    def _run_protocol(self, service_dir: Path, doc: VerifyDocument, client: httpx.Client) -> VerifyDocument:
        health_url = self.base_url + self.health_path
        missing_url = self.base_url + self.missing_path

        with ComposeStack(service_dir, doc, runner=self._runner) as stack:
            if not self.wait_for_health(client, health_url):
                logger.warning("Health endpoint %s not reachable after %d attempts", health_url, self.health_attempts)
                doc.append("## ERROR", "health endpoint not reachable after waiting")
                stack.logs()
                health_failed = True
            else:
                health_failed = False
                doc.append("## /health (DB up) — expect ok", self.capture(client, health_url), "")
                stack.stop(self.db_service)
                doc.append("## /health (DB down) — expect degraded", self.capture(client, health_url), "")
                doc.append("## /nope (404 JSON)", self.capture(client, missing_url), "")

        if health_failed:
            return doc.finish("fail")

        missing = missing_evidence(doc.transcript())
        if missing:
            logger.info("Verification evidence missing: %s", ", ".join(missing))
        return doc.finish(derive_verdict(doc.transcript()))

    def _probe_ok(self, client: httpx.Client, url: str) -> bool:
        try:
            response = client.get(url, timeout=self.probe_timeout)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Health probe %s failed: %r", url, exc)
            return False
        return response.status_code < 400

    def wait_for_health(self, client: httpx.Client, url: str) -> bool:
        """Poll until a probe succeeds or the attempt budget runs out."""
        retrying = Retrying(
            stop=stop_after_attempt(self.health_attempts),
            wait=wait_fixed(self.health_interval),
            retry=retry_if_result(lambda ok: not ok),
            retry_error_callback=lambda state: False,
            sleep=self._sleep,
        )
        return retrying(self._probe_ok, client, url)

    def capture(self, client: httpx.Client, url: str) -> str:
        """One probe, rendered for the transcript whatever happens."""
        try:
            response = client.get(url, timeout=self.probe_timeout)
        except Exception as exc:  # noqa: BLE001
            return f"probe error: {url}: {exc!r}"
        return format_response(response)
