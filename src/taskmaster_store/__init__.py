"""
taskmaster-store: task-master task databases as canonical task trees.

Entry point for library use is tasks.task_store.TaskStore; the command line front
end lives in cli/.
"""
