# stakedao_node/__init__.py
"""Stake-weighted DAO governance node."""

__version__ = "0.1.0"
