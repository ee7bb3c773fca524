"""
Runtime: lifecycle of the background loops (upstream rebuilder, notifier).
"""

from signum_explorer.runtime.lifecycle import ExplorerRuntime

__all__ = ["ExplorerRuntime"]
