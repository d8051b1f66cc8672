"""Task list server — a prioritized to-do list per agent."""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Literal

import orjson
from pydantic import BaseModel, Field, ValidationError

from agentline.config import settings
from agentline.exceptions import InvalidParamsError, ServerError, TaskNotFoundError
from agentline.protocol.messages import (
    Content,
    Prompt,
    PromptArgument,
    PromptMessage,
    Resource,
    ToolResult,
)
from agentline.protocol.provider import ToolProvider
from agentline.storage.gateway import PersistenceGateway
from agentline.tools.schema import ToolArguments
from agentline.types import now, safe_agent_name

_logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


_PRIORITY_RANK = {
    TaskPriority.URGENT: 0,
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
}

_STATUS_MARK = {
    TaskStatus.PENDING: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.COMPLETED: "[x]",
    TaskStatus.CANCELLED: "[-]",
}


class TodoTask(BaseModel):
    id: int
    title: str
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: date | None = None
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_overdue(self) -> bool:
        return (
            self.due_date is not None
            and self.due_date < date.today()
            and self.status != TaskStatus.COMPLETED
        )

    def sort_key(self) -> tuple:
        """Open tasks first, then priority, then due date (undated last), then id."""
        return (
            self.status == TaskStatus.COMPLETED,
            _PRIORITY_RANK[self.priority],
            self.due_date is None,
            self.due_date or date.max,
            self.id,
        )

    def headline(self) -> str:
        return f"{_STATUS_MARK[self.status]} ({self.priority.value}) [{self.id}] {self.title}"


def _file_name(agent_name: str) -> str:
    return f"task_list_{safe_agent_name(agent_name)}.json"


def parse_due_date(value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise InvalidParamsError("Invalid due date format. Use YYYY-MM-DD") from e


# ── Tool arguments ────────────────────────────────────────────────

PriorityName = Literal["low", "medium", "high", "urgent"]
StatusName = Literal["pending", "in_progress", "completed", "cancelled"]


class AddTaskArgs(ToolArguments):
    title: str = Field(min_length=1, max_length=500, description="Task title")
    priority: PriorityName = Field("medium", description="Task priority")
    due_date: str | None = Field(None, description="Due date (YYYY-MM-DD)")
    tags: list[str] = Field(default_factory=list, description="Tags for organizing the task")
    notes: str | None = Field(None, max_length=2000, description="Additional notes")


class ListTasksArgs(ToolArguments):
    status: Literal["all", "pending", "in_progress", "completed", "cancelled"] = Field(
        "all", description="Filter by status"
    )
    priority: PriorityName | None = Field(None, description="Filter by priority")
    tag: str | None = Field(None, description="Filter by tag")
    due_today: bool = Field(False, description="Only tasks due today")
    overdue: bool = Field(False, description="Only overdue tasks")


class TaskIdArgs(ToolArguments):
    task_id: int = Field(description="Task ID")


class UpdateStatusArgs(TaskIdArgs):
    status: StatusName = Field(description="New status")


class EditTaskArgs(TaskIdArgs):
    title: str | None = Field(None, min_length=1, max_length=500, description="New title")
    priority: PriorityName | None = Field(None, description="New priority")
    due_date: str | None = Field(None, description="New due date (YYYY-MM-DD)")
    tags: list[str] | None = Field(None, description="Replacement tags")
    notes: str | None = Field(None, max_length=2000, description="New notes")


class SearchTasksArgs(ToolArguments):
    query: str = Field(min_length=1, description="Text to find in titles, notes and tags")
    case_sensitive: bool = Field(False, description="Whether the search is case-sensitive")


# ── Provider ──────────────────────────────────────────────────────


class TaskListProvider(ToolProvider):
    name = "agent-task-list"
    version = "1.0.0"

    def __init__(
        self,
        gateway: PersistenceGateway | None = None,
        max_tasks: int | None = None,
    ) -> None:
        self._gateway = gateway or PersistenceGateway(settings.persist_dir)
        self._max_tasks = max_tasks if max_tasks is not None else settings.max_tasks_per_agent
        self._lists: dict[str, list[TodoTask]] = {}
        super().__init__()

    def register_tools(self) -> None:
        self.add_tool("task_list_add", "Add a new task to your task list", self._add, AddTaskArgs)
        self.add_tool("task_list_list", "List all tasks or filter by criteria", self._list, ListTasksArgs)
        self.add_tool("task_list_complete", "Mark a task as completed", self._complete, TaskIdArgs)
        self.add_tool("task_list_update_status", "Update the status of a task", self._update_status, UpdateStatusArgs)
        self.add_tool("task_list_edit", "Edit an existing task", self._edit, EditTaskArgs)
        self.add_tool("task_list_delete", "Delete a task from your task list", self._delete, TaskIdArgs)
        self.add_tool("task_list_search", "Search tasks by title, notes, or tags", self._search, SearchTasksArgs)
        self.add_tool("task_list_clear_completed", "Remove all completed tasks from your task list",
                      self._clear_completed)
        self.add_tool("task_list_stats", "Get statistics about your task list", self._stats)

    # ── State ────────────────────────────────────────────────────

    async def tasks(self, agent_name: str) -> list[TodoTask]:
        if agent_name not in self._lists:
            self._lists[agent_name] = await self._load(agent_name)
        return self._lists[agent_name]

    async def _load(self, agent_name: str) -> list[TodoTask]:
        document = await self._gateway.load_document(_file_name(agent_name))
        if not isinstance(document, list):
            return []
        tasks = []
        for entry in document:
            try:
                tasks.append(TodoTask.model_validate(entry))
            except ValidationError as e:
                _logger.warning("Skipping task in list of %s: %s", agent_name, e)
        return tasks

    async def _save(self, agent_name: str) -> None:
        document = [t.model_dump(mode="json") for t in self._lists.get(agent_name, [])]
        await self._gateway.save_document(_file_name(agent_name), document)

    def _find(self, tasks: list[TodoTask], task_id: int) -> TodoTask:
        task = next((t for t in tasks if t.id == task_id), None)
        if task is None:
            raise TaskNotFoundError(f"Task with ID {task_id} not found")
        return task

    # ── Tools ────────────────────────────────────────────────────

    async def _add(self, args: AddTaskArgs) -> ToolResult:
        tasks = await self.tasks(args.agent_name)
        if len(tasks) >= self._max_tasks:
            raise InvalidParamsError(f"Maximum number of tasks ({self._max_tasks}) reached")

        task = TodoTask(
            id=max((t.id for t in tasks), default=0) + 1,
            title=args.title,
            priority=TaskPriority(args.priority),
            due_date=parse_due_date(args.due_date),
            tags=args.tags,
            notes=args.notes,
        )
        tasks.append(task)
        await self._save(args.agent_name)

        lines = ["Task added successfully!", f"ID: {task.id}", f"Title: {task.title}",
                 f"Priority: {task.priority.value}"]
        if task.due_date:
            lines.append(f"Due: {task.due_date.isoformat()}")
        if task.tags:
            lines.append(f"Tags: {', '.join(task.tags)}")
        lines.append(f"Total tasks: {len(tasks)}")
        return ToolResult.text("\n".join(lines))

    def filter_tasks(self, tasks: list[TodoTask], args: ListTasksArgs) -> list[TodoTask]:
        selected = list(tasks)
        if args.status != "all":
            selected = [t for t in selected if t.status == TaskStatus(args.status)]
        if args.priority is not None:
            selected = [t for t in selected if t.priority == TaskPriority(args.priority)]
        if args.tag is not None:
            selected = [t for t in selected if args.tag in t.tags]
        if args.due_today:
            today = date.today()
            selected = [t for t in selected if t.due_date == today]
        if args.overdue:
            selected = [t for t in selected if t.is_overdue]
        return sorted(selected, key=TodoTask.sort_key)

    async def _list(self, args: ListTasksArgs) -> ToolResult:
        tasks = await self.tasks(args.agent_name)
        if not tasks:
            return ToolResult.text("Your task list is empty.")
        selected = self.filter_tasks(tasks, args)
        if not selected:
            return ToolResult.text("No tasks match your filter criteria.")

        plural = "" if len(selected) == 1 else "s"
        blocks = [f"Task List ({len(selected)} task{plural}):"]
        for task in selected:
            lines = [task.headline()]
            if task.due_date:
                suffix = " (OVERDUE)" if task.is_overdue else ""
                lines.append(f"    Due: {task.due_date.isoformat()}{suffix}")
            if task.tags:
                lines.append(f"    Tags: {', '.join(task.tags)}")
            if task.notes:
                lines.append(f"    Notes: {task.notes}")
            blocks.append("\n".join(lines))
        return ToolResult.text("\n\n".join(blocks))

    async def set_status(self, agent_name: str, task_id: int, status: TaskStatus) -> ToolResult:
        tasks = await self.tasks(agent_name)
        task = self._find(tasks, task_id)
        old = task.status
        stamp = now()
        task.status = status
        task.updated_at = stamp
        task.completed_at = stamp if status == TaskStatus.COMPLETED else None
        await self._save(agent_name)

        lines = ["Task status updated!", f"Task: {task.title}", f"Status: {old.value} -> {status.value}"]
        if task.completed_at:
            lines.append(f"Completed at: {task.completed_at.isoformat()}")
        lines.append(f"Task ID: {task.id}")
        return ToolResult.text("\n".join(lines))

    async def _complete(self, args: TaskIdArgs) -> ToolResult:
        return await self.set_status(args.agent_name, args.task_id, TaskStatus.COMPLETED)

    async def _update_status(self, args: UpdateStatusArgs) -> ToolResult:
        return await self.set_status(args.agent_name, args.task_id, TaskStatus(args.status))

    async def _edit(self, args: EditTaskArgs) -> ToolResult:
        tasks = await self.tasks(args.agent_name)
        task = self._find(tasks, args.task_id)
        due_date = parse_due_date(args.due_date)

        if args.title is not None:
            task.title = args.title
        if args.priority is not None:
            task.priority = TaskPriority(args.priority)
        if due_date is not None:
            task.due_date = due_date
        if args.tags is not None:
            task.tags = args.tags
        if args.notes is not None:
            task.notes = args.notes
        task.updated_at = now()
        await self._save(args.agent_name)

        lines = ["Task updated successfully!", f"ID: {task.id}", f"Title: {task.title}",
                 f"Priority: {task.priority.value}"]
        if task.due_date:
            lines.append(f"Due: {task.due_date.isoformat()}")
        if task.tags:
            lines.append(f"Tags: {', '.join(task.tags)}")
        lines.append(f"Last updated: {task.updated_at.isoformat()}")
        return ToolResult.text("\n".join(lines))

    async def _delete(self, args: TaskIdArgs) -> ToolResult:
        tasks = await self.tasks(args.agent_name)
        task = self._find(tasks, args.task_id)
        tasks.remove(task)
        await self._save(args.agent_name)
        return ToolResult.text(
            f"Task deleted successfully!\nDeleted: {task.title}\nRemaining tasks: {len(tasks)}"
        )

    async def _search(self, args: SearchTasksArgs) -> ToolResult:
        tasks = await self.tasks(args.agent_name)
        if not tasks:
            return ToolResult.text("Your task list is empty.")

        fold = (lambda s: s) if args.case_sensitive else str.lower
        query = fold(args.query)
        matches = [
            t for t in tasks
            if query in fold(t.title)
            or query in fold(t.notes or "")
            or query in fold(" ".join(t.tags))
        ]
        if not matches:
            return ToolResult.text(f'No tasks found matching "{args.query}"')

        blocks = [f'Search Results for "{args.query}" ({len(matches)} found):']
        for task in matches:
            block = task.headline()
            if task.notes:
                block += f"\n    {task.notes}"
            blocks.append(block)
        return ToolResult.text("\n\n".join(blocks))

    async def _clear_completed(self, args: ToolArguments) -> ToolResult:
        tasks = await self.tasks(args.agent_name)
        before = len(tasks)
        tasks[:] = [t for t in tasks if t.status != TaskStatus.COMPLETED]
        removed = before - len(tasks)
        await self._save(args.agent_name)
        plural = "" if removed == 1 else "s"
        return ToolResult.text(f"Cleared {removed} completed task{plural}.\nRemaining tasks: {len(tasks)}")

    async def _stats(self, args: ToolArguments) -> ToolResult:
        tasks = await self.tasks(args.agent_name)
        if not tasks:
            return ToolResult.text("Task List Statistics:\n- Total tasks: 0\n- Status: Empty list")

        by_status = {s: sum(1 for t in tasks if t.status == s) for s in TaskStatus}
        by_priority = {p: sum(1 for t in tasks if t.priority == p) for p in TaskPriority}
        today = date.today()
        overdue = sum(1 for t in tasks if t.is_overdue)
        due_today = sum(1 for t in tasks if t.due_date == today)
        rate = by_status[TaskStatus.COMPLETED] / len(tasks) * 100

        return ToolResult.text(
            "Task List Statistics:\n"
            f"Total Tasks: {len(tasks)}\n\n"
            "Status Breakdown:\n"
            f"  Pending: {by_status[TaskStatus.PENDING]}\n"
            f"  In Progress: {by_status[TaskStatus.IN_PROGRESS]}\n"
            f"  Completed: {by_status[TaskStatus.COMPLETED]}\n"
            f"  Cancelled: {by_status[TaskStatus.CANCELLED]}\n\n"
            "Priority Breakdown:\n"
            f"  Urgent: {by_priority[TaskPriority.URGENT]}\n"
            f"  High: {by_priority[TaskPriority.HIGH]}\n"
            f"  Medium: {by_priority[TaskPriority.MEDIUM]}\n"
            f"  Low: {by_priority[TaskPriority.LOW]}\n\n"
            "Due Dates:\n"
            f"  Overdue: {overdue}\n"
            f"  Due Today: {due_today}\n\n"
            f"Completion Rate: {rate:.1f}%"
        )

    # ── Resources & prompts ──────────────────────────────────────

    async def list_resources(self) -> list[Resource]:
        return [
            Resource(uri="task_list://<agentName>/list", name="Task List",
                     description="Your complete task list", mime_type="application/json"),
            Resource(uri="task_list://<agentName>/pending", name="Pending Tasks",
                     description="Tasks that need to be done", mime_type="application/json"),
            Resource(uri="task_list://<agentName>/completed", name="Completed Tasks",
                     description="Tasks that have been finished", mime_type="application/json"),
        ]

    async def read_resource(self, uri: str) -> Content:
        scheme, _, rest = uri.partition("://")
        agent_name, _, view = rest.partition("/")
        if scheme != "task_list" or not agent_name or view not in ("list", "pending", "completed"):
            raise InvalidParamsError(f"Resource not found: {uri}")

        tasks = await self.tasks(agent_name)
        if view == "pending":
            tasks = [t for t in tasks if t.status == TaskStatus.PENDING]
        elif view == "completed":
            tasks = [t for t in tasks if t.status == TaskStatus.COMPLETED]
        payload = [t.model_dump(mode="json") for t in tasks]
        return Content(text=orjson.dumps(payload).decode(), mime_type="application/json", uri=uri)

    async def list_prompts(self) -> list[Prompt]:
        agent = PromptArgument(name="agentName", description="Name of the agent whose tasks to use", required=True)
        return [
            Prompt(
                name="prioritize_tasks",
                description="Help prioritize tasks based on urgency and importance",
                arguments=[agent],
            ),
            Prompt(
                name="break_down_task",
                description="Break down a complex task into smaller sub-tasks",
                arguments=[
                    agent,
                    PromptArgument(name="task_id", description="ID of the task to break down", required=True),
                ],
            ),
        ]

    async def get_prompt(self, name: str, arguments: dict[str, Any]) -> list[PromptMessage]:
        agent_name = arguments.get("agentName")
        if not isinstance(agent_name, str) or not agent_name:
            raise InvalidParamsError("agentName parameter is required")
        tasks = await self.tasks(agent_name)

        if name == "prioritize_tasks":
            pending = "\n".join(f"- {t.title}" for t in tasks if t.status == TaskStatus.PENDING)
            return [PromptMessage.user(
                f"Please help me prioritize these tasks based on urgency and importance:\n\n{pending}"
            )]

        if name == "break_down_task":
            try:
                task_id = int(arguments.get("task_id"))
            except (TypeError, ValueError) as e:
                raise InvalidParamsError("task_id must be an integer") from e
            task = self._find(tasks, task_id)
            text = (
                "Please help me break down this task into smaller, actionable sub-tasks:\n\n"
                f"Task: {task.title}\n"
            )
            if task.notes:
                text += f"Notes: {task.notes}\n"
            text += f"Priority: {task.priority.value}\n"
            if task.due_date:
                text += f"Due: {task.due_date.isoformat()}\n"
            return [PromptMessage.user(text)]

        raise ServerError(f"Unknown prompt: {name}")
