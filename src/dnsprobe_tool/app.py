from typing import List, Optional

# FastAPI creates the app object and defines the routes
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from dnsprobe.config import AppConfig, load_config
from dnsprobe.errors import ConfigError
from dnsprobe.factory import create_dns_probe
from dnsprobe.job import ProbeJob
from dnsprobe.log import bootstrap_logging, setup_logging
from dnsprobe.registry import Registry, default_registry

# Combine records into something the user can see
from reporting.assembler import Assemble

from .cli import build_jobs, run_once


def create_app(config: Optional[AppConfig] = None, registry: Optional[Registry] = None) -> FastAPI:
    """
    Build the API around the configured monitors.

    Monitors are built (and validated) once here; a bad configuration fails
    startup instead of every request.
    """
    config = config or load_config()
    registry = registry or default_registry()
    jobs: List[ProbeJob] = build_jobs(registry, config.probe_configs())
    assembler = Assemble()

    app = FastAPI(title="DNS Probe")

    @app.get("/health")
    def health():
        return {"ok": True, "monitors": len(config.monitors), "jobs": len(jobs)}

    # One tick of every configured monitor
    @app.get("/run")
    def run():
        window = max((j.config.timeout for j in jobs), default=0.0)
        records = run_once(jobs, window)
        return JSONResponse(content=assembler.build(records, meta={"version": "0.1", "source": "api"}))

    # Ad-hoc check of one server
    @app.get("/check")
    def check(
        server: str = Query(..., min_length=1, max_length=300),
        target: str = Query(..., min_length=1, max_length=253),
        query_type: str = "ANY",
        record_type: Optional[str] = None,
        value: Optional[str] = None,
        timeout: float = Query(5.0, gt=0, le=60),
    ):
        try:
            probe = create_dns_probe(
                {
                    "id": "adhoc",
                    "dns_servers": [server],
                    "target": target,
                    "query_type": query_type,
                    "timeout": timeout,
                    "check": {"response": {"record_type": record_type, "value": value}},
                }
            )
        except ConfigError as e:
            raise HTTPException(status_code=400, detail=e.errors)

        records = [job.run() for job in probe.jobs]
        return JSONResponse(content=assembler.build(records, meta={"version": "0.1", "source": "api"}))

    return app


def main() -> FastAPI:
    """App factory for `uvicorn --factory dnsprobe_tool.app:main`."""
    bootstrap_logging()
    config = load_config()
    setup_logging(config.logging.level, config.logging.format)
    return create_app(config)
