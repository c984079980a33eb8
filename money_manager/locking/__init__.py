"""Edit window package."""

from money_manager.locking.scheduler import EDIT_WINDOW, EditLockScheduler, EditWindow

__all__ = ["EDIT_WINDOW", "EditLockScheduler", "EditWindow"]
