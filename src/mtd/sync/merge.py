"""
Reconciliation engine -- merge two diverged lists into one.

Items have no global identity, so two items are the same item when
their body and weekday assignment match. The policy, per kind:

    1. Pair items across sides by identity, occurrence by occurrence.
    2. A pair is done if either side is done. A todo keeps the earlier
       completion time.
    3. Unpaired items are kept. Removals leave no tombstones.
    4. Expire todos finished more than a day ago.
    5. Renumber ids 0..n-1.

By default the merged sequence is the remote list in remote order
followed by local-only items in local order. A client merging the
server's reply into its own list therefore ends up with the server's
exact list. The server merges with ``local_first`` so its stored order
stays put across syncs and newcomers are appended at the end.

Merging is pure: inputs are not modified and it never fails on
well-formed lists.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional, TypeVar

from pydantic import BaseModel

from ..models import TdList, Task, Todo, renumber

logger = logging.getLogger("mtd.sync.merge")

Item = TypeVar("Item", Todo, Task)


class MergeReport(BaseModel):
    """What a merge changed relative to the local list."""

    todos_added: int = 0
    tasks_added: int = 0
    todos_completed: int = 0
    tasks_completed: int = 0
    todos_expired: int = 0

    @property
    def changed(self) -> bool:
        return any(
            (
                self.todos_added,
                self.tasks_added,
                self.todos_completed,
                self.tasks_completed,
                self.todos_expired,
            )
        )


def _earliest(a: Optional[datetime], b: Optional[datetime]) -> Optional[datetime]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def _merge_todo(local: Todo, remote: Todo) -> Todo:
    merged = remote.model_copy(deep=True)
    merged.done = local.done or remote.done
    if merged.done:
        merged.done_on = _earliest(
            local.done_on if local.done else None,
            remote.done_on if remote.done else None,
        )
    else:
        merged.done_on = None
    return merged


def _merge_task(local: Task, remote: Task) -> Task:
    merged = remote.model_copy(deep=True)
    merged.done = local.done or remote.done
    return merged


def _union(
    local: list[Item], remote: list[Item], merge_pair, local_first: bool = False
) -> tuple[list[Item], int, int]:
    """Union two item lists by identity.

    The k-th local item with an identity pairs with the k-th remote
    item with that identity.

    Returns:
        Merged items, how many came only from remote, and how many
        local items became done because the remote had them done.
    """
    unmatched: dict[tuple, list[Item]] = defaultdict(list)
    for item in local:
        unmatched[item.identity].append(item)

    partner: dict[int, Item] = {}
    for item in remote:
        candidates = unmatched.get(item.identity)
        if candidates:
            own = candidates.pop(0)
            partner[id(own)] = item
            partner[id(item)] = own

    merged: list[Item] = []
    added = 0
    completed = 0

    def take_remote(item: Item) -> None:
        nonlocal added, completed
        own = partner.get(id(item))
        if own is None:
            merged.append(item.model_copy(deep=True))
            added += 1
            return
        result = merge_pair(own, item)
        if result.done and not own.done:
            completed += 1
        merged.append(result)

    if local_first:
        for item in local:
            if id(item) in partner:
                take_remote(partner[id(item)])
            else:
                merged.append(item.model_copy(deep=True))
        for item in remote:
            if id(item) not in partner:
                take_remote(item)
    else:
        for item in remote:
            take_remote(item)
        for item in local:
            if id(item) not in partner:
                merged.append(item.model_copy(deep=True))

    return merged, added, completed


def reconcile(
    local: TdList, remote: TdList, now: datetime, local_first: bool = False
) -> tuple[TdList, MergeReport]:
    """Reconcile ``local`` with ``remote`` as of ``now``.

    Args:
        local: This instance's list.
        remote: The peer's list, freshly decoded.
        now: Evaluation instant used for todo expiry.
        local_first: Order the result by ``local`` instead of ``remote``.

    Returns:
        The merged list and a report of what changed locally.
    """
    todos, todos_added, todos_completed = _union(
        local.todos, remote.todos, _merge_todo, local_first
    )
    tasks, tasks_added, tasks_completed = _union(
        local.tasks, remote.tasks, _merge_task, local_first
    )

    kept = [t for t in todos if not t.is_expired(now)]
    expired = len(todos) - len(kept)
    renumber(kept)
    renumber(tasks)
    merged = TdList(todos=kept, tasks=tasks)

    report = MergeReport(
        todos_added=todos_added,
        tasks_added=tasks_added,
        todos_completed=todos_completed,
        tasks_completed=tasks_completed,
        todos_expired=expired,
    )
    logger.debug(
        "Merged %d+%d todos and %d+%d tasks into %d todos, %d tasks",
        len(local.todos), len(remote.todos),
        len(local.tasks), len(remote.tasks),
        len(merged.todos), len(merged.tasks),
    )
    return merged, report


def merge(
    local: TdList, remote: TdList, now: datetime, local_first: bool = False
) -> TdList:
    """Merged list of ``local`` and ``remote``. See :func:`reconcile`."""
    merged, _ = reconcile(local, remote, now, local_first)
    return merged
