"""Jamaa Market Observatory — message flow observability.

Serves Protean's Observatory dashboard, Prometheus metrics and REST API for
the Ordering and Settlement event pipelines when they run under the Engine.

Usage:
    uvicorn src.observatory:app --host 0.0.0.0 --port 9000
"""

from ordering.domain import ordering
from protean.server.observatory import create_observatory_app
from settlement.domain import settlement

ordering.init()
settlement.init()

app = create_observatory_app(
    domains=[ordering, settlement],
    title="Jamaa Market Observatory",
)
