"""Markdown checklist parsing for StudyFlow.

Dialect:
    # 📚 Checklist title
    ## 🧠 Section title
    *Optional one-line section description*
    - [ ] Task (~25m) !!
        - [x] Nested task (~1h30m) [low]

Parsing is a single forward pass over the lines and never raises: anything
that does not match a recognised pattern is ignored.
"""

from __future__ import annotations

import re
import secrets
from urllib.parse import urlparse

from studyflow.models import Link, ParsedChecklist, TodoItem, TodoSection

# Emoji presentation / extended pictographic code points, plus the variation
# selector and zero-width joiner used inside emoji sequences.
_EMOJI_CHARS = (
    "\u00a9\u00ae\u203c\u2049\u2122\u2139\u2194-\u2199\u21a9\u21aa"
    "\u231a\u231b\u2328\u23cf\u23e9-\u23f3\u23f8-\u23fa\u24c2"
    "\u25aa\u25ab\u25b6\u25c0\u25fb-\u25fe"
    "\u2600-\u2605\u2607-\u2612\u2614-\u2685\u2690-\u2705\u2708-\u2712\u2714\u2716"
    "\u271d\u2721\u2728\u2733\u2734\u2744\u2747\u274c\u274e\u2753-\u2755\u2757"
    "\u2763-\u2767\u2795-\u2797\u27a1\u27b0\u27bf\u2934\u2935"
    "\u2b05-\u2b07\u2b1b\u2b1c\u2b50\u2b55\u3030\u303d\u3297\u3299"
    "\U0001f000-\U0001faff\ufe0f\u200d"
)
_EMOJI_RE = re.compile(rf"^([{_EMOJI_CHARS}]+)\s*")

_TITLE_RE = re.compile(r"^#\s+(.+)$")
_SECTION_RE = re.compile(r"^##\s+(.+)$")
_DESCRIPTION_RE = re.compile(r"^\*(.+)\*$")
_CHECKBOX_RE = re.compile(r"^(\s*)- \[([ xX])\]\s*(.+)$")

_TIME_RE = re.compile(
    r"\(~?(\d+)\s*h(?:\s*(\d+)\s*m(?:in(?:utes?)?)?)?\)"
    r"|\(~?(\d+)\s*m(?:in(?:utes?)?)?\)",
    re.IGNORECASE,
)
_SINGLE_BANG_RE = re.compile(r"(?<!!)!(?!!)")
_MD_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_URL_RE = re.compile(r"(?:^|\s)(https?://\S+)")

UNTITLED = "Untitled Checklist"
INDENT = 4


def generate_id() -> str:
    """Short random id for checklists, sections and items."""
    return secrets.token_hex(6)


def extract_emoji(text: str) -> tuple[str | None, str]:
    """Split a leading emoji run off *text*. Returns (emoji, clean_text)."""
    m = _EMOJI_RE.match(text)
    if m:
        return m.group(1), text[m.end():].strip()
    return None, text.strip()


def parse_checkbox_line(line: str) -> tuple[str, bool, int] | None:
    """Parse '- [ ] text' into (text, completed, level), or None."""
    m = _CHECKBOX_RE.match(line)
    if not m:
        return None
    level = len(m.group(1)) // INDENT
    completed = m.group(2).lower() == "x"
    return m.group(3).strip(), completed, level


def clean_text(text: str) -> str:
    """Strip bold and inline-code markers."""
    return text.replace("**", "").replace("`", "")


def parse_time_estimate(text: str) -> tuple[str, int | None]:
    """Extract the first time annotation from *text*.

    Supports (25m), (~25m), (40 min), (40 minutes), (1h), (~1h30m), (1h 30m).
    Returns (text_without_annotation, minutes); minutes is None when absent
    or zero.
    """
    m = _TIME_RE.search(text)
    if not m:
        return text, None
    if m.group(1):
        minutes = int(m.group(1)) * 60
        if m.group(2):
            minutes += int(m.group(2))
    else:
        minutes = int(m.group(3))
    cleaned = (text[: m.start()] + text[m.end():]).strip()
    return cleaned, minutes if minutes > 0 else None


def parse_priority(text: str) -> tuple[str, str | None]:
    """Extract !!!/!!/! or [high]/[medium]/[low] markers."""
    lower = text.lower()
    if "!!!" in text or "[high]" in lower:
        cleaned = re.sub(r"\[high\]", "", text.replace("!!!", ""), flags=re.IGNORECASE)
        return cleaned.strip(), "high"
    if "!!" in text or "[medium]" in lower:
        cleaned = re.sub(r"\[medium\]", "", text.replace("!!", ""), flags=re.IGNORECASE)
        return cleaned.strip(), "medium"
    if _SINGLE_BANG_RE.search(text) or "[low]" in lower:
        cleaned = re.sub(r"\[low\]", "", _SINGLE_BANG_RE.sub("", text), flags=re.IGNORECASE)
        return cleaned.strip(), "low"
    return text, None


def _link_label(url: str) -> str:
    try:
        host = urlparse(url).hostname
    except ValueError:
        host = None
    if not host:
        return "Link"
    return host.replace("www.", "", 1)


def parse_links(text: str) -> tuple[str, list[Link]]:
    """Pull [label](url) links and bare http(s) URLs out of *text*."""
    links = [Link(label=m.group(1), url=m.group(2)) for m in _MD_LINK_RE.finditer(text)]
    cleaned = _MD_LINK_RE.sub("", text).strip()

    for m in _URL_RE.finditer(cleaned):
        url = m.group(1)
        if not any(link.url == url for link in links):
            links.append(Link(label=_link_label(url), url=url))
    cleaned = _URL_RE.sub("", cleaned).strip()
    return cleaned, links


def _new_section(heading: str) -> TodoSection:
    emoji, title = extract_emoji(heading)
    return TodoSection(id=generate_id(), title=title, emoji=emoji)


def parse_markdown_checklist(markdown: str) -> ParsedChecklist:
    """Parse checklist markdown into sections of nested TodoItems."""
    title = ""
    title_emoji: str | None = None
    sections: list[TodoSection] = []
    current: TodoSection | None = None
    stack: list[TodoItem] = []

    for raw in markdown.split("\n"):
        line = raw.rstrip("\r")

        m = _TITLE_RE.match(line)
        if m and not title:
            title_emoji, title = extract_emoji(m.group(1))
            continue

        m = _SECTION_RE.match(line)
        if m:
            if current is not None:
                sections.append(current)
            current = _new_section(m.group(1))
            stack = []
            continue

        m = _DESCRIPTION_RE.match(line)
        if m and current is not None and not current.items:
            current.description = m.group(1).strip()
            continue

        parsed = parse_checkbox_line(line)
        if parsed is None or current is None:
            continue
        text, completed, level = parsed

        text, time_estimate = parse_time_estimate(text)
        text, priority = parse_priority(text)
        text, links = parse_links(text)

        item = TodoItem(
            id=generate_id(),
            text=clean_text(text),
            completed=completed,
            level=level,
            time_estimate=time_estimate,
            priority=priority,
            links=links,
        )

        current.total_count += 1
        if completed:
            current.completed_count += 1
        if time_estimate:
            current.total_time_estimate = (current.total_time_estimate or 0) + time_estimate

        if level == 0:
            current.items.append(item)
            stack = [item]
            continue

        del stack[level:]
        if stack:
            stack[-1].children.append(item)
        else:
            # Indentation with no open ancestor: attach at section root.
            current.items.append(item)
        stack.append(item)

    if current is not None:
        sections.append(current)

    total_completed = sum(s.completed_count for s in sections)
    total_items = sum(s.total_count for s in sections)
    total_time = sum(s.total_time_estimate or 0 for s in sections)

    return ParsedChecklist(
        title=title or UNTITLED,
        emoji=title_emoji,
        sections=sections,
        total_completed=total_completed,
        total_items=total_items,
        total_time_estimate=total_time if total_time > 0 else None,
    )


# ── Rendering ─────────────────────────────────────────────────


def format_estimate(minutes: int) -> str:
    """60 -> '1h', 90 -> '1h30m', 25 -> '25m'."""
    hours, mins = divmod(minutes, 60)
    if hours and mins:
        return f"{hours}h{mins}m"
    if hours:
        return f"{hours}h"
    return f"{mins}m"


_PRIORITY_MARKERS = {"high": "!!!", "medium": "!!", "low": "!"}


def _render_items(items: list[TodoItem], depth: int, out: list[str]) -> None:
    for item in items:
        parts = [item.text]
        if item.time_estimate:
            parts.append(f"(~{format_estimate(item.time_estimate)})")
        if item.priority in _PRIORITY_MARKERS:
            parts.append(_PRIORITY_MARKERS[item.priority])
        parts.extend(f"[{link.label}]({link.url})" for link in item.links)
        mark = "x" if item.completed else " "
        out.append(f"{' ' * (INDENT * depth)}- [{mark}] {' '.join(parts)}")
        _render_items(item.children, depth + 1, out)


def render_markdown_checklist(checklist) -> str:
    """Render a ParsedChecklist or Checklist back into the markdown dialect."""
    heading = f"{checklist.emoji} {checklist.title}" if checklist.emoji else checklist.title
    out = [f"# {heading}"]
    for section in checklist.sections:
        out.append("")
        sec_heading = f"{section.emoji} {section.title}" if section.emoji else section.title
        out.append(f"## {sec_heading}")
        if section.description:
            out.append(f"*{section.description}*")
        _render_items(section.items, 0, out)
    return "\n".join(out) + "\n"
