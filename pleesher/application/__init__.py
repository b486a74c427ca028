"""Application layer: the Pleesher API client."""

from pleesher.application.client import PleesherClient

__all__ = ["PleesherClient"]
