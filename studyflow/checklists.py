"""Checklist store CRUD and persistence for StudyFlow.

The store is an explicit ChecklistStore object: callers load it, apply the
functions below, then save it. Every mutation replaces the touched
Checklist with a new object and stamps updated_at.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

from studyflow.checklist_parser import generate_id
from studyflow.fileio import read_json, write_json_atomic
from studyflow.models import (
    Checklist,
    ChecklistStore,
    ParsedChecklist,
    TodoItem,
    TodoSection,
)
from studyflow.mutations import (
    count_items,
    find_item,
    is_valid_count,
    recalculate_totals,
    toggle_all_in_section,
    update_item_completion,
)
from studyflow.workspace import checklists_path, now_iso

logger = logging.getLogger(__name__)

DEFAULT_SECTION_TITLE = "Tasks"


# ── Persistence ───────────────────────────────────────────────


def normalize_checklist(checklist: Checklist) -> Checklist:
    """Repair counters that are not numbers or break 0 <= completed <= total."""
    sections = []
    for section in checklist.sections:
        total, completed = count_items(section.items)
        sec_total = section.total_count if is_valid_count(section.total_count) else total
        sec_completed = section.completed_count if is_valid_count(section.completed_count) else completed
        if not 0 <= sec_completed <= sec_total:
            sec_total, sec_completed = total, completed
        sections.append(replace(section, total_count=int(sec_total), completed_count=int(sec_completed)))

    total_completed, total_items = recalculate_totals(sections)
    return replace(
        checklist,
        id=checklist.id or generate_id(),
        sections=sections,
        total_completed=total_completed,
        total_items=total_items,
    )


def load_store(root: Path | None = None) -> ChecklistStore:
    """Load checklists.json; missing or corrupt data yields an empty store."""
    data = read_json(checklists_path(root))
    store = ChecklistStore.from_dict(data)
    store.checklists = [normalize_checklist(c) for c in store.checklists]
    if store.active_checklist_id and store.active_checklist is None:
        logger.warning("Clearing dangling active checklist id %s", store.active_checklist_id)
        store.active_checklist_id = None
    return store


def save_store(store: ChecklistStore, root: Path | None = None) -> None:
    """Save the store back to checklists.json atomically."""
    write_json_atomic(checklists_path(root), store.to_dict())


# ── Helpers ───────────────────────────────────────────────────


def _with_totals(checklist: Checklist, sections: list[TodoSection]) -> Checklist:
    total_completed, total_items = recalculate_totals(sections)
    return replace(
        checklist,
        sections=sections,
        total_completed=total_completed,
        total_items=total_items,
        updated_at=now_iso(),
    )


def _swap(store: ChecklistStore, updated: Checklist) -> None:
    store.checklists = [updated if c.id == updated.id else c for c in store.checklists]


# ── CRUD ──────────────────────────────────────────────────────


def create_checklist(
    store: ChecklistStore, title: str, type: str = "quick", emoji: str | None = None
) -> Checklist:
    """Create an empty checklist and make it active.

    Quick checklists start with a single empty "Tasks" section.
    """
    now = now_iso()
    sections = []
    if type == "quick":
        sections = [TodoSection(id=generate_id(), title=DEFAULT_SECTION_TITLE)]
    checklist = Checklist(
        id=generate_id(),
        title=title,
        emoji=emoji,
        created_at=now,
        updated_at=now,
        type=type,
        sections=sections,
    )
    store.checklists = [checklist] + store.checklists
    store.active_checklist_id = checklist.id
    logger.debug("Created %s checklist %s", type, checklist.id)
    return checklist


def create_checklist_with_sections(store: ChecklistStore, checklist: Checklist) -> Checklist:
    """Insert a prebuilt checklist (bulk import). Does not change the active one."""
    now = now_iso()
    created = normalize_checklist(replace(checklist, created_at=now, updated_at=now))
    store.checklists = [created] + store.checklists
    return created


def create_from_markdown(
    store: ChecklistStore,
    markdown: str,
    parsed: ParsedChecklist,
    source_urls: list[str] | None = None,
) -> Checklist:
    """Store a parsed checklist with its source text and make it active."""
    now = now_iso()
    checklist = Checklist(
        id=generate_id(),
        title=parsed.title,
        emoji=parsed.emoji,
        created_at=now,
        updated_at=now,
        type="markdown",
        markdown=markdown,
        source_urls=list(source_urls or []),
        sections=parsed.sections,
        total_completed=parsed.total_completed,
        total_items=parsed.total_items,
    )
    store.checklists = [checklist] + store.checklists
    store.active_checklist_id = checklist.id
    logger.debug("Imported markdown checklist %s (%d items)", checklist.id, checklist.total_items)
    return checklist


def update_checklist(store: ChecklistStore, checklist_id: str, **fields: Any) -> Checklist | None:
    """Shallow-merge *fields* into a checklist. Unknown id is a no-op."""
    existing = store.get(checklist_id)
    if existing is None:
        return None
    fields.pop("id", None)
    updated = replace(existing, **fields, updated_at=now_iso())
    _swap(store, updated)
    return updated


def delete_checklist(store: ChecklistStore, checklist_id: str) -> bool:
    """Remove a checklist; clears the active pointer if it pointed here."""
    before = len(store.checklists)
    store.checklists = [c for c in store.checklists if c.id != checklist_id]
    if store.active_checklist_id == checklist_id:
        store.active_checklist_id = None
    return len(store.checklists) != before


def set_active_checklist(store: ChecklistStore, checklist_id: str | None) -> Checklist | None:
    """Point the store at a checklist. Unknown ids clear the pointer."""
    if checklist_id is None or store.get(checklist_id) is None:
        store.active_checklist_id = None
        return None
    store.active_checklist_id = checklist_id
    return store.get(checklist_id)


def add_task_to_checklist(
    store: ChecklistStore,
    checklist_id: str,
    section_id: str,
    text: str,
    completed: bool = False,
    **task_fields: Any,
) -> TodoItem | None:
    """Append a new top-level task to a section.

    Extra fields (time_estimate, priority, due_date, tags, recurring, links)
    are passed through to TodoItem. Returns the new item, or None if the
    checklist or section does not exist.
    """
    checklist = store.get(checklist_id)
    if checklist is None or not any(s.id == section_id for s in checklist.sections):
        return None

    task_fields.pop("children", None)
    task_fields.pop("level", None)
    task_fields.pop("id", None)
    item = TodoItem(id=generate_id(), text=text, completed=completed, level=0, **task_fields)

    sections = []
    for section in checklist.sections:
        if section.id != section_id:
            sections.append(section)
            continue
        estimate = section.total_time_estimate
        if item.time_estimate:
            estimate = (estimate or 0) + item.time_estimate
        sections.append(
            replace(
                section,
                items=section.items + [item],
                total_count=section.total_count + 1,
                completed_count=section.completed_count + (1 if completed else 0),
                total_time_estimate=estimate,
            )
        )
    _swap(store, _with_totals(checklist, sections))
    return item


def add_section_to_checklist(
    store: ChecklistStore, checklist_id: str, title: str, emoji: str | None = None
) -> TodoSection | None:
    """Append an empty section."""
    checklist = store.get(checklist_id)
    if checklist is None:
        return None
    section = TodoSection(id=generate_id(), title=title, emoji=emoji)
    _swap(store, replace(checklist, sections=checklist.sections + [section], updated_at=now_iso()))
    return section


def toggle_task(store: ChecklistStore, checklist_id: str, task_id: str, completed: bool) -> bool:
    """Set a task's completed flag wherever it sits in the checklist.

    Returns False when the checklist or task cannot be found.
    """
    checklist = store.get(checklist_id)
    if checklist is None:
        return False
    hit = find_item(checklist.sections, task_id)
    if hit is None:
        return False
    section, _item = hit
    sections = update_item_completion(checklist.sections, section.id, task_id, completed)
    _swap(store, _with_totals(checklist, sections))
    return True


def toggle_section(store: ChecklistStore, checklist_id: str, section_id: str, completed: bool) -> bool:
    """Mark every task in a section done or open."""
    checklist = store.get(checklist_id)
    if checklist is None or not any(s.id == section_id for s in checklist.sections):
        return False
    sections = toggle_all_in_section(checklist.sections, section_id, completed)
    _swap(store, _with_totals(checklist, sections))
    return True


def _reissue_ids(items: list[TodoItem]) -> list[TodoItem]:
    return [
        replace(item, id=generate_id(), children=_reissue_ids(item.children), tags=list(item.tags), links=list(item.links))
        for item in items
    ]


def duplicate_checklist(store: ChecklistStore, checklist_id: str) -> Checklist:
    """Deep-copy a checklist with fresh ids at every depth.

    Raises KeyError if the checklist does not exist.
    """
    original = store.get(checklist_id)
    if original is None:
        raise KeyError(f"Checklist not found: {checklist_id}")
    now = now_iso()
    sections = [
        replace(section, id=generate_id(), items=_reissue_ids(section.items))
        for section in original.sections
    ]
    duplicated = replace(
        original,
        id=generate_id(),
        title=f"{original.title} (Copy)",
        created_at=now,
        updated_at=now,
        sections=sections,
        source_urls=list(original.source_urls),
    )
    store.checklists = [duplicated] + store.checklists
    return duplicated
