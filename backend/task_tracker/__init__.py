"""Task Tracker backend: owner-scoped tasks, subtasks, trash, and workload reports."""
