from .loader import TaskGroup, catalog_entries, load_task_groups

__all__ = ["TaskGroup", "catalog_entries", "load_task_groups"]
