"""Operation logging for file-system and command activity."""

from .logger import OperationLogger

__all__ = ["OperationLogger"]
