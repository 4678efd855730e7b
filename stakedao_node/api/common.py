"""
stakedao_node/api/common.py
---------------------------------
Shared router plumbing.

- The executor lives on `app.state.executor`; routers reach it through the
  `get_executor` dependency so tests can mount a fresh one per app.
- The caller is identified by the "X-DAO-User" header.
- DaoError codes surface verbatim as HTTP `detail` strings.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, NoReturn

from fastapi import Header, HTTPException, Request, status

from ..dao_runtime.errors import (
    ALREADY_EXISTS,
    NOT_FOUND,
    AuthorizationFailure,
    DaoError,
)
from ..executor import DaoExecutor


def get_executor(request: Request) -> DaoExecutor:
    return request.app.state.executor


def current_user(
    x_dao_user: str = Header(
        ...,
        alias="X-DAO-User",
        description="Member identity (wallet id / handle) acting on this request.",
    )
) -> str:
    user = x_dao_user.strip()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-DAO-User header")
    return user


def status_for(exc: DaoError) -> int:
    if exc.code == NOT_FOUND:
        return status.HTTP_404_NOT_FOUND
    if exc.code == ALREADY_EXISTS:
        return status.HTTP_409_CONFLICT
    if isinstance(exc, AuthorizationFailure):
        return status.HTTP_403_FORBIDDEN
    return status.HTTP_400_BAD_REQUEST


def raise_http(exc: DaoError) -> NoReturn:
    raise HTTPException(status_code=status_for(exc), detail=exc.code) from exc


def as_dict(view: Any) -> Dict[str, Any]:
    """Records and frozen views all serialize through to_dict()/asdict()."""
    if hasattr(view, "to_dict"):
        return view.to_dict()
    return asdict(view)
