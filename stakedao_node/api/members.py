from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..dao_runtime.errors import DaoError
from ..executor import DaoExecutor
from .common import as_dict, get_executor, raise_http

router = APIRouter(prefix="/orgs/{seed}/members", tags=["members"])


@router.get("/{member}")
def get_member_profile(seed: int, member: str, ex: DaoExecutor = Depends(get_executor)) -> Dict[str, Any]:
    """Read-only view of a member's reward points and reputation."""
    try:
        view = ex.query_member_profile(seed, member)
    except DaoError as exc:
        raise_http(exc)
    return as_dict(view)
