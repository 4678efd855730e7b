"""
stakedao_node/api/governance.py
---------------------------------
Proposal + vote endpoints.

    POST   /orgs/{seed}/proposals                        create
    GET    /orgs/{seed}/proposals/{id}                   raw record
    GET    /orgs/{seed}/proposals/{id}/results           finalize-on-read results
    POST   /orgs/{seed}/proposals/{id}/votes             cast a vote
    DELETE /orgs/{seed}/proposals/{id}/votes             retract own vote
    POST   /orgs/{seed}/proposals/{id}/votes/cleanup     release a vote after finalization
    POST   /orgs/{seed}/proposals/{id}/execute           settle a Succeeded proposal
    POST   /orgs/{seed}/proposals/{id}/cleanup           settle a Failed proposal

The acting member comes from the X-DAO-User header.
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..dao_runtime.errors import DaoError
from ..dao_runtime.proposal import payload_from_dict
from ..dao_runtime.vote import VoteChoice
from ..executor import DaoExecutor
from .common import as_dict, current_user, get_executor, raise_http

router = APIRouter(prefix="/orgs/{seed}/proposals", tags=["governance"])


class PayloadModel(BaseModel):
    type: Literal["value_payout", "executable", "opinion_poll"] = "opinion_poll"
    target: Optional[str] = None
    amount: Optional[int] = None


class ProposalCreate(BaseModel):
    id: int
    name: str
    gist: str = ""
    payload: PayloadModel = Field(default_factory=PayloadModel)
    quorum: int
    expiry: int


class VoteRequest(BaseModel):
    amount: int
    choice: VoteChoice


class ExecuteRequest(BaseModel):
    payee: Optional[str] = None


@router.post("")
def create_proposal(
    seed: int,
    body: ProposalCreate,
    user: str = Depends(current_user),
    ex: DaoExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    requested = body.payload
    if requested.type == "value_payout" and (not requested.target or requested.amount is None):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="value_payout requires target and amount",
        )

    try:
        payload = payload_from_dict(requested.model_dump())
        proposal = ex.create_proposal(
            seed,
            user,
            body.id,
            body.name,
            body.gist,
            payload,
            body.quorum,
            body.expiry,
        )
    except DaoError as exc:
        raise_http(exc)
    return {"ok": True, "proposal": as_dict(proposal)}


@router.get("/{proposal_id}")
def get_proposal(seed: int, proposal_id: int, ex: DaoExecutor = Depends(get_executor)) -> Dict[str, Any]:
    try:
        proposal = ex.get_proposal(seed, proposal_id)
    except DaoError as exc:
        raise_http(exc)
    return as_dict(proposal)


@router.get("/{proposal_id}/results")
def get_results(seed: int, proposal_id: int, ex: DaoExecutor = Depends(get_executor)) -> Dict[str, Any]:
    try:
        results = ex.query_results(seed, proposal_id)
    except DaoError as exc:
        raise_http(exc)
    out = as_dict(results)
    out["status"] = results.status.value
    return out


@router.post("/{proposal_id}/votes")
def cast_vote(
    seed: int,
    proposal_id: int,
    body: VoteRequest,
    user: str = Depends(current_user),
    ex: DaoExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    try:
        proposal = ex.cast_vote(seed, user, proposal_id, body.amount, body.choice)
    except DaoError as exc:
        raise_http(exc)
    return {"ok": True, "status": proposal.status.value}


@router.delete("/{proposal_id}/votes")
def retract_vote(
    seed: int,
    proposal_id: int,
    user: str = Depends(current_user),
    ex: DaoExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    try:
        proposal = ex.retract_vote(seed, user, proposal_id)
    except DaoError as exc:
        raise_http(exc)
    return {"ok": True, "status": proposal.status.value}


@router.post("/{proposal_id}/votes/cleanup")
def cleanup_vote(
    seed: int,
    proposal_id: int,
    user: str = Depends(current_user),
    ex: DaoExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    try:
        proposal = ex.cleanup_vote(seed, user, proposal_id)
    except DaoError as exc:
        raise_http(exc)
    return {"ok": True, "status": proposal.status.value}


@router.post("/{proposal_id}/execute")
def execute_proposal(
    seed: int,
    proposal_id: int,
    body: Optional[ExecuteRequest] = None,
    user: str = Depends(current_user),
    ex: DaoExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    payee = body.payee if body else None
    try:
        proposal = ex.execute_proposal(seed, user, proposal_id, payee=payee)
    except DaoError as exc:
        raise_http(exc)
    return {"ok": True, "proposal": as_dict(proposal)}


@router.post("/{proposal_id}/cleanup")
def cleanup_proposal(
    seed: int,
    proposal_id: int,
    user: str = Depends(current_user),
    ex: DaoExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    try:
        proposal = ex.cleanup_proposal(seed, user, proposal_id)
    except DaoError as exc:
        raise_http(exc)
    return {"ok": True, "proposal": as_dict(proposal)}
