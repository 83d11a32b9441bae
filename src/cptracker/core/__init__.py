"""Core business logic module.

Modules:
- cron: Cron expression validation and matching
- reconciler: Merges fetched judge data into storage
- inactivity: Activity signal from recent submissions
- notifier: Reminder rendering, dispatch and logging
- sync_orchestrator: Per-student pipeline and batch runs
- scheduler: Cron-driven batch trigger with settings polling
- factory: Wires the pipeline from AppConfig
"""

__all__ = [
    "cron",
    "reconciler",
    "inactivity",
    "notifier",
    "sync_orchestrator",
    "scheduler",
    "factory",
]
