"""Editing-session helpers: undo/redo history and debounced autosave."""

from .autosave import AutoSaveCoordinator, SaveStatus
from .undo import UndoRedoBuffer

__all__ = ["AutoSaveCoordinator", "SaveStatus", "UndoRedoBuffer"]
