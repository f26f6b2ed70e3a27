"""Liveness-gated withdrawal and transfer requests."""

from .request_model import RequestModel, RequestModelConfig

__all__ = ["RequestModel", "RequestModelConfig"]
