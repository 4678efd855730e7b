from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dao_runtime.errors import DaoError
from ..executor import DaoExecutor
from .common import as_dict, current_user, get_executor, raise_http

router = APIRouter(prefix="/orgs/{seed}/stake", tags=["staking"])


class StakeAmount(BaseModel):
    amount: int


@router.post("")
def open_stake(
    seed: int,
    user: str = Depends(current_user),
    ex: DaoExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    try:
        stake = ex.open_stake(seed, user)
    except DaoError as exc:
        raise_http(exc)
    return {"ok": True, "stake": as_dict(stake)}


@router.post("/deposit")
def deposit_stake(
    seed: int,
    body: StakeAmount,
    user: str = Depends(current_user),
    ex: DaoExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    try:
        stake = ex.deposit_stake(seed, user, body.amount)
    except DaoError as exc:
        raise_http(exc)
    return {"ok": True, "stake": as_dict(stake)}


@router.post("/withdraw")
def withdraw_stake(
    seed: int,
    body: StakeAmount,
    user: str = Depends(current_user),
    ex: DaoExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    try:
        stake = ex.withdraw_stake(seed, user, body.amount)
    except DaoError as exc:
        raise_http(exc)
    return {"ok": True, "stake": as_dict(stake)}


@router.delete("")
def close_stake(
    seed: int,
    user: str = Depends(current_user),
    ex: DaoExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    try:
        ex.close_stake(seed, user)
    except DaoError as exc:
        raise_http(exc)
    return {"ok": True}


@router.get("/{owner}")
def get_stake(seed: int, owner: str, ex: DaoExecutor = Depends(get_executor)) -> Dict[str, Any]:
    try:
        stake = ex.get_stake(seed, owner)
    except DaoError as exc:
        raise_http(exc)
    return as_dict(stake)
