"""StudyFlow core library: checklists, timers, execution lock and daily focus.

Public API re-exports for convenient imports:
    from studyflow import parse_markdown_checklist, load_store, compute_daily_focus, ...
"""

# Workspace & paths
from studyflow.workspace import (
    workspace_root,
    get_user_timezone,
    today_str,
    now_iso,
    settings_path,
    hooks_config_path,
    checklists_path,
    timer_path,
    execution_path,
    goals_path,
    stats_path,
)

# File I/O
from studyflow.fileio import (
    read_text,
    read_json,
    read_yaml,
    write_json_atomic,
    write_yaml_atomic,
)

# Settings
from studyflow.settings import load_settings, save_settings

# Markdown parsing
from studyflow.checklist_parser import (
    generate_id,
    extract_emoji,
    parse_checkbox_line,
    parse_time_estimate,
    parse_priority,
    parse_links,
    parse_markdown_checklist,
    render_markdown_checklist,
)

# Mutations
from studyflow.mutations import (
    update_item_completion,
    toggle_all_in_section,
    recalculate_totals,
    count_items,
    find_item,
    first_uncompleted,
)

# Checklist store
from studyflow.checklists import (
    normalize_checklist,
    load_store,
    save_store,
    create_checklist,
    create_checklist_with_sections,
    create_from_markdown,
    update_checklist,
    delete_checklist,
    set_active_checklist,
    add_task_to_checklist,
    add_section_to_checklist,
    toggle_task,
    toggle_section,
    duplicate_checklist,
)

# Timers
from studyflow.timer import (
    PomodoroTimer,
    PomodoroCompletion,
    Stopwatch,
    load_timers,
    save_timers,
    format_clock,
    format_duration,
)

# Execution lock
from studyflow.execution import (
    load_execution,
    save_execution,
    lock_task,
    unlock_task,
    complete_active_task,
    start_pomodoro,
    request_more_time,
    process_pending_start,
)

# Daily focus
from studyflow.daily_focus import (
    sort_goals_by_priority,
    compute_daily_focus,
    daily_focus_message,
)

# Goals
from studyflow.goals import (
    parse_goals_markdown,
    goal_from_parsed,
    checklist_sections_from_goal,
    import_goals,
    load_goals,
    save_goals,
)

# Stats
from studyflow.stats import (
    add_study_time,
    add_completed_task,
    remove_completed_task,
    add_session,
    calculate_streak,
    load_stats,
    save_stats,
)

# Sync
from studyflow.sync import SyncQueue, merge_remote, pull_into_store

# Hooks
from studyflow.hooks import run_hooks

# Models
from studyflow.models import (
    Link,
    TodoItem,
    TodoSection,
    ParsedChecklist,
    Checklist,
    ChecklistStore,
    ActiveTask,
    PendingStart,
    ExecutionState,
    PomodoroSettings,
    AppSettings,
    PomodoroState,
    Lap,
    StopwatchState,
    Goal,
    ParsedGoal,
    NextTask,
    DailyFocus,
    StudySession,
    DayTotals,
    StudyStats,
)
