"""
stakedao_node/api/organization.py
---------------------------------

    POST /orgs/{seed}          initialize an organization
    GET  /orgs/{seed}          read its configuration
    POST /orgs/{seed}/issue    buy one lot of governance tokens
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dao_runtime.errors import DaoError
from ..executor import DaoExecutor
from .common import as_dict, current_user, get_executor, raise_http

router = APIRouter(prefix="/orgs", tags=["organization"])


class OrgInit(BaseModel):
    # Unset fields fall back to the node's `dao` config section
    issue_price: Optional[int] = None
    issue_amount: Optional[int] = None
    proposal_fee: Optional[int] = None
    max_supply: Optional[int] = None
    min_quorum: Optional[int] = None
    max_expiry: Optional[int] = None
    min_reputation_for_proposal: Optional[int] = None


@router.post("/{seed}")
def initialize_organization(
    seed: int,
    body: Optional[OrgInit] = None,
    ex: DaoExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    params = (body or OrgInit()).model_dump(exclude_none=True)
    try:
        org = ex.initialize_organization(seed, **params)
    except DaoError as exc:
        raise_http(exc)
    return {"ok": True, "organization": as_dict(org)}


@router.get("/{seed}")
def get_organization(seed: int, ex: DaoExecutor = Depends(get_executor)) -> Dict[str, Any]:
    try:
        org = ex.get_organization(seed)
    except DaoError as exc:
        raise_http(exc)
    return as_dict(org)


@router.post("/{seed}/issue")
def issue_tokens(
    seed: int,
    user: str = Depends(current_user),
    ex: DaoExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    try:
        amount = ex.issue_tokens(seed, user)
    except DaoError as exc:
        raise_http(exc)
    return {"ok": True, "issued": amount, "balance": ex.tokens.balance_of(user)}
