"""Member notation labels."""

from ztnet.notations.service import NotationService

__all__ = ["NotationService"]
