"""
Health check HTTP server for liveness and readiness probes.

Ready means the ledger database answers queries and holds a created ledger;
the detailed endpoint adds the ledger summary and the conservation audit.
"""

import sqlite3
from pathlib import Path
from typing import Any

from flask import Flask, jsonify

from grant_ledger.kernel.logging import get_logger

logger = get_logger(__name__)

app = Flask(__name__)

SERVICE_NAME = "grant-ledger"

# Set by initialize_health_server()
_db_path: Path | None = None
_ledger: Any = None  # GrantLedger for the detailed check


def initialize_health_server(db_path: str | Path, ledger: Any = None) -> None:
    """
    Point the health endpoints at a ledger database.

    Args:
        db_path: Path to the ledger's SQLite database
        ledger: Optional GrantLedger for detailed health
    """
    global _db_path, _ledger
    _db_path = Path(db_path)
    _ledger = ledger
    logger.info("Health server initialized", db_path=str(_db_path))


def _not_ready(reason: str, **details: Any) -> tuple[Any, int]:
    logger.error("Readiness check failed", reason=reason, **details)
    return jsonify({"status": "not_ready", "reason": reason, **details}), 503


@app.route("/health/live", methods=["GET"])
def liveness() -> tuple[Any, int]:
    """Liveness probe - the process is running."""
    return jsonify({"status": "alive", "service": SERVICE_NAME}), 200


@app.route("/health/ready", methods=["GET"])
def readiness() -> tuple[Any, int]:
    """
    Readiness probe.

    Checks:
    - Database path configured and file present
    - Events table answers a query
    - The ledger was created (GrantLedgerCreated recorded)

    Returns:
        200 when ready, 503 otherwise
    """
    if _db_path is None:
        return _not_ready("database_path_not_initialized")

    if not _db_path.exists():
        return _not_ready("database_file_not_found", db_path=str(_db_path))

    try:
        conn = sqlite3.connect(str(_db_path), timeout=1.0)
        try:
            event_count = conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
            created = conn.execute(
                "SELECT COUNT(*) FROM events WHERE event_type = 'GrantLedgerCreated'"
            ).fetchone()[0]
        finally:
            conn.close()
    except sqlite3.Error as e:
        return _not_ready("database_operational_error", error=str(e))

    if not created:
        return _not_ready("ledger_not_initialized")

    logger.debug("Readiness check passed", event_count=event_count)
    return (
        jsonify({"status": "ready", "database": "accessible", "event_count": event_count}),
        200,
    )


@app.route("/health", methods=["GET"])
def detailed_health() -> tuple[Any, int]:
    """
    Detailed health - ledger summary and audit results when a ledger is attached.

    Degraded (503) when the audit finds a conservation violation.
    """
    health_data: dict[str, Any] = {"status": "healthy", "service": SERVICE_NAME}

    if _ledger is None:
        health_data["ledger"] = {"status": "not_attached"}
        return jsonify(health_data), 200

    violations = _ledger.audit()
    health_data["ledger"] = _ledger.summary()
    health_data["violations"] = [
        {"check": event.event_type, **event.payload} for event in violations
    ]
    if violations:
        health_data["status"] = "degraded"

    status_code = 200 if health_data["status"] == "healthy" else 503
    return jsonify(health_data), status_code


def run_health_server(port: int = 8080, debug: bool = False) -> None:
    """
    Run the health check server.

    Args:
        port: Port to listen on (default: 8080)
        debug: Enable Flask debug mode (default: False)
    """
    logger.info("Starting health check server", port=port)
    app.run(host="0.0.0.0", port=port, debug=debug)
