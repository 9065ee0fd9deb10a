"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskType, RotationReason)
- task_store.py: SQLite-backed storage
- rotation.py: rotation rules, stats and replacement generation
- task_forge.py: template / LLM content sources for new tasks
- task_scheduler.py: polling scheduler that runs rotation sweeps
"""
