"""Relayer orchestrator."""

from .node import RelayerNode

__all__ = ["RelayerNode"]
