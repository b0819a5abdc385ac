"""Service contract guidance for injection into planner and implementer messages.

The verification step probes a fixed surface; these rules tell the agents
what that surface is so a docker delivery has a chance of passing.
"""

_CONTRACT_RULES = """\
- Listen on port {port} inside the container and publish it as {port} on the host.
- GET {health_path} returns HTTP 200 with JSON {{"status": "ok"}} when the database is reachable.
- GET {health_path} still returns HTTP 200, with JSON {{"status": "degraded"}}, when the database \
is down. The service must keep running.
- Any undefined route returns HTTP 404 with a JSON body.
- Provide docker-compose.yml with the database as a separate service named `{db_service}` so it \
can be stopped on its own.\
"""


def load_guidance(docker: bool) -> str:
    """Return the service contract rules for a docker delivery.

    Returns an empty string for local delivery or if guidance is disabled in
    config (set contract_guidance_enabled to false or remove it).
    """
    from devloop.config import get_config

    config = get_config()
    if not docker or not config.get("contract_guidance_enabled", False):
        return ""

    verify = config.get("verify") or {}
    return _CONTRACT_RULES.format(
        port=verify.get("port", 3000),
        health_path=verify.get("health_path", "/health"),
        db_service=verify.get("db_service", "db"),
    )
