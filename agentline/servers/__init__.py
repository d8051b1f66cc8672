"""Per-agent workspace servers: notepad, task list and kanban board."""
