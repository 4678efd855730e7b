from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import governance, members, organization, staking
from .config import configure_logging, load_config
from .executor import DaoExecutor

log = logging.getLogger(__name__)


def create_app(executor: Optional[DaoExecutor] = None, cfg: Optional[Dict[str, Any]] = None) -> FastAPI:
    if executor is None:
        cfg = cfg or load_config(os.getcwd())
        configure_logging(cfg)
        executor = DaoExecutor(cfg)

    app = FastAPI(title="StakeDAO Node API")
    app.state.executor = executor

    # CORS: tighten in prod if needed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(organization.router)
    app.include_router(staking.router)
    app.include_router(governance.router)
    app.include_router(members.router)

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "records": len(executor.store.keys())}

    log.info("StakeDAO API ready (persistence=%s)", executor.persist is not None)
    return app
