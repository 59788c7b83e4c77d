"""
Pydantic models for todos, tasks and the list that holds them.

A Todo is done once. A Task comes back every week on its weekdays.
Both live in a TdList, which hands out small integer ids and keeps
them unique per kind. Ids are local handles: a sync renumbers them.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .errors import NotFound

EXPIRY_GRACE = timedelta(days=1)


def utcnow() -> datetime:
    """Current instant, timezone-aware."""
    return datetime.now(timezone.utc)


class ItemKind(str, Enum):
    """The two kinds of items a TdList holds."""

    TODO = "todo"
    TASK = "task"


class Weekday(str, Enum):
    """Day of the week, ordered Monday first."""

    MON = "mon"
    TUE = "tue"
    WED = "wed"
    THU = "thu"
    FRI = "fri"
    SAT = "sat"
    SUN = "sun"

    @property
    def position(self) -> int:
        """Position in the week, 0 for Monday."""
        return _WEEK.index(self)

    @classmethod
    def from_date(cls, day: date) -> "Weekday":
        return _WEEK[day.weekday()]

    @classmethod
    def today(cls) -> "Weekday":
        return cls.from_date(datetime.now().date())

    def following(self, days: int = 1) -> "Weekday":
        """The weekday ``days`` after this one."""
        return _WEEK[(self.position + days) % 7]


_WEEK = list(Weekday)


def sorted_weekdays(weekdays: Iterable[Weekday]) -> list[Weekday]:
    """Deduplicate and order weekdays Monday first."""
    return sorted({Weekday(w) for w in weekdays}, key=lambda w: w.position)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Todo(BaseModel):
    """A one-time item, optionally pinned to a weekday."""

    id: int = Field(default=0, ge=0)
    body: str
    weekday: Optional[Weekday] = None
    done: bool = False
    done_on: Optional[datetime] = None

    @field_validator("done_on")
    @classmethod
    def _aware_done_on(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @property
    def identity(self) -> tuple[str, Optional[Weekday]]:
        """What makes two todos the same item across lists."""
        return (self.body, self.weekday)

    def set_done(self, done: bool, now: datetime) -> None:
        """Mark done or undone.

        Marking an already-done todo done keeps its original
        completion time, so repeated toggles don't delay expiry.
        """
        if done and not self.done:
            self.done_on = _as_utc(now)
        elif not done:
            self.done_on = None
        self.done = done

    def is_expired(self, now: datetime) -> bool:
        """True when done more than a day before ``now``."""
        if not self.done or self.done_on is None:
            return False
        return _as_utc(now) - self.done_on > EXPIRY_GRACE

    def __str__(self) -> str:
        return f"{self.body} (ID: {self.id})"


class Task(BaseModel):
    """A repeating item for one or more weekdays."""

    id: int = Field(default=0, ge=0)
    body: str
    weekdays: list[Weekday]
    done: bool = False

    @field_validator("weekdays")
    @classmethod
    def _normalize_weekdays(cls, value: list[Weekday]) -> list[Weekday]:
        if not value:
            raise ValueError("A task needs at least one weekday")
        return sorted_weekdays(value)

    @property
    def identity(self) -> tuple[str, tuple[Weekday, ...]]:
        """What makes two tasks the same item across lists."""
        return (self.body, tuple(self.weekdays))

    def set_done(self, done: bool) -> None:
        self.done = done

    def __str__(self) -> str:
        return f"{self.body} (ID: {self.id})"


def next_free_id(items: Iterable[Todo | Task]) -> int:
    """Smallest non-negative integer not used by ``items``."""
    used = {item.id for item in items}
    candidate = 0
    while candidate in used:
        candidate += 1
    return candidate


def renumber(items: list) -> None:
    """Reassign ids in sequence order.

    Handing out the smallest unused id to each item in turn, starting
    from an empty id space, yields 0, 1, 2, ... in list order.
    """
    for index, item in enumerate(items):
        item.id = index


class TdList(BaseModel):
    """All todos and tasks of one mtd instance.

    Ids are unique per kind. New items get the smallest id not in
    use, so ids freed by a removal are handed out again.
    """

    todos: list[Todo] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_ids(self) -> "TdList":
        for kind, items in ((ItemKind.TODO, self.todos), (ItemKind.TASK, self.tasks)):
            ids = [item.id for item in items]
            if len(ids) != len(set(ids)):
                raise ValueError(f"Duplicate {kind.value} ids in list")
        return self

    # -------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, text: str) -> "TdList":
        return cls.model_validate_json(text)

    # -------------------------------------------------------------------
    # Todos
    # -------------------------------------------------------------------

    def add_todo(self, body: str, weekday: Optional[Weekday] = None) -> Todo:
        """Create a todo with the next free id and append it."""
        todo = Todo(id=next_free_id(self.todos), body=body, weekday=weekday)
        self.insert_todo(todo)
        return todo

    def insert_todo(self, todo: Todo) -> None:
        """Append an existing todo, keeping its id.

        Raises:
            ValueError: If a todo with the same id is already present.
        """
        if any(t.id == todo.id for t in self.todos):
            raise ValueError(f"Todo id {todo.id} is already in use")
        self.todos.append(todo)

    def get_todo(self, todo_id: int) -> Todo:
        for todo in self.todos:
            if todo.id == todo_id:
                return todo
        raise NotFound(ItemKind.TODO.value, todo_id)

    def remove_todo(self, todo_id: int) -> Todo:
        todo = self.get_todo(todo_id)
        self.todos = [t for t in self.todos if t is not todo]
        return todo

    def set_todo(
        self,
        todo_id: int,
        body: Optional[str] = None,
        weekday: Optional[Weekday] = None,
        clear_weekday: bool = False,
    ) -> Todo:
        """Change the body and/or weekday of a todo."""
        todo = self.get_todo(todo_id)
        if body is not None:
            todo.body = body
        if clear_weekday:
            todo.weekday = None
        elif weekday is not None:
            todo.weekday = Weekday(weekday)
        return todo

    def set_todo_done(self, todo_id: int, done: bool, now: datetime) -> Todo:
        todo = self.get_todo(todo_id)
        todo.set_done(done, now)
        return todo

    def expire_done_todos(self, now: datetime) -> int:
        """Drop todos finished more than a day ago.

        Returns:
            Number of todos removed.
        """
        before = len(self.todos)
        self.todos = [t for t in self.todos if not t.is_expired(now)]
        return before - len(self.todos)

    # -------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------

    def add_task(self, body: str, weekdays: Iterable[Weekday]) -> Task:
        """Create a task with the next free id and append it."""
        task = Task(id=next_free_id(self.tasks), body=body, weekdays=list(weekdays))
        self.insert_task(task)
        return task

    def insert_task(self, task: Task) -> None:
        """Append an existing task, keeping its id.

        Raises:
            ValueError: If a task with the same id is already present.
        """
        if any(t.id == task.id for t in self.tasks):
            raise ValueError(f"Task id {task.id} is already in use")
        self.tasks.append(task)

    def get_task(self, task_id: int) -> Task:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise NotFound(ItemKind.TASK.value, task_id)

    def remove_task(self, task_id: int) -> Task:
        task = self.get_task(task_id)
        self.tasks = [t for t in self.tasks if t is not task]
        return task

    def set_task(
        self,
        task_id: int,
        body: Optional[str] = None,
        weekdays: Optional[Iterable[Weekday]] = None,
    ) -> Task:
        """Change the body and/or weekdays of a task.

        Raises:
            NotFound: If no task has ``task_id``.
            ValueError: If ``weekdays`` is given but empty.
        """
        task = self.get_task(task_id)
        if weekdays is not None:
            weekdays = list(weekdays)
            if not weekdays:
                raise ValueError("A task needs at least one weekday")
            task.weekdays = sorted_weekdays(weekdays)
        if body is not None:
            task.body = body
        return task

    def set_task_done(self, task_id: int, done: bool) -> Task:
        task = self.get_task(task_id)
        task.set_done(done)
        return task

    # -------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------

    def todos_for(self, weekday: Weekday) -> list[Todo]:
        """Todos to show on ``weekday``. Unscheduled todos show every day."""
        return [t for t in self.todos if t.weekday is None or t.weekday == weekday]

    def tasks_for(self, weekday: Weekday) -> list[Task]:
        return [t for t in self.tasks if weekday in t.weekdays]

    @property
    def is_empty(self) -> bool:
        return not self.todos and not self.tasks
