# stakedao_node/dao_runtime/__init__.py
from __future__ import annotations

"""
DAO governance runtime package (lazy import)

The record modules are pure and cheap, but crypto_utils pulls in PyNaCl.
Import-time side effects stay out of this file so `stakedao_node.config`
and the test suite can load without touching the crypto stack.

Submodules are exposed lazily via __getattr__ (PEP 562).
"""

from importlib import import_module
from typing import Any

__all__ = [
    "arith",
    "atomic_store",
    "clock",
    "crypto",
    "errors",
    "keys",
    "member",
    "params",
    "proposal",
    "setup",
    "stake",
    "treasury",
    "vote",
]

_LAZY_MAP = {
    "arith": "stakedao_node.dao_runtime.arith",
    "atomic_store": "stakedao_node.dao_runtime.atomic_store",
    "clock": "stakedao_node.dao_runtime.clock",
    "crypto": "stakedao_node.dao_runtime.crypto_utils",
    "errors": "stakedao_node.dao_runtime.errors",
    "keys": "stakedao_node.dao_runtime.keys",
    "member": "stakedao_node.dao_runtime.member",
    "params": "stakedao_node.dao_runtime.params",
    "proposal": "stakedao_node.dao_runtime.proposal",
    "setup": "stakedao_node.dao_runtime.setup",
    "stake": "stakedao_node.dao_runtime.stake",
    "treasury": "stakedao_node.dao_runtime.treasury",
    "vote": "stakedao_node.dao_runtime.vote",
}


def __getattr__(name: str) -> Any:
    mod_path = _LAZY_MAP.get(name)
    if not mod_path:
        raise AttributeError(name)
    return import_module(mod_path)


def __dir__() -> list[str]:
    return sorted(set(globals().keys()) | set(_LAZY_MAP.keys()))
