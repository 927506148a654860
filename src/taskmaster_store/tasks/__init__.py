"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, TaskPriority)
- status_codec.py: external status spellings <-> canonical status
- formats.py: the four task document shapes and the normalizer
- hierarchy.py: dotted ids -> task trees
- lookup.py: id resolution shared by reads and writes
- progress.py: dual progress counts and next-task selection
- task_store.py: the TaskStore facade
"""
