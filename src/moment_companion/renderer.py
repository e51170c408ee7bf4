"""Archive HTML rendering."""

from __future__ import annotations

import html
import json
import re
from datetime import datetime
from typing import Dict, List, Optional

from .models import (
    ArchiveData,
    ArchiveEvent,
    FeedbackEvent,
    ParticipantJoinEvent,
    ParticipantLeaveEvent,
    ReactionEvent,
    ScreenshotEvent,
    ScreenshotRecord,
    SpeakerChangeEvent,
)
from .storage import parse_iso

TRIGGER_COLORS = {
    "reaction": "#f59e0b",
    "peak": "#06b6d4",
    "manual": "#8b5cf6",
}

EVENT_COLORS = {
    "participant-join": "#10b981",
    "participant-leave": "#ef4444",
    "reaction": "#f59e0b",
    "feedback": "#ec4899",
    "speaker-change": "#06b6d4",
    "screenshot": "#8b5cf6",
}

EVENT_ICONS = {
    "participant-join": "&#x2192;",
    "participant-leave": "&#x2190;",
    "reaction": "&#x1F44D;",
    "feedback": "&#x1F4AC;",
    "speaker-change": "&#x1F3A4;",
    "screenshot": "&#x1F4F7;",
}

DEFAULT_COLOR = "#6366f1"


def _esc(value: object) -> str:
    return html.escape(str(value), quote=True)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def _parse(iso: str) -> Optional[datetime]:
    try:
        return parse_iso(iso)
    except (TypeError, ValueError):
        return None


def format_time(iso: str) -> str:
    parsed = _parse(iso)
    return parsed.strftime("%H:%M:%S") if parsed else ""


def format_date(iso: str) -> str:
    parsed = _parse(iso)
    if not parsed:
        return ""
    return f"{parsed.strftime('%A, %B')} {parsed.day}, {parsed.year}"


def format_duration(start: str, end: Optional[str]) -> str:
    if not end:
        return "In progress"
    started = _parse(start)
    ended = _parse(end)
    if not started or not ended:
        return ""
    mins = int((ended - started).total_seconds() // 60)
    hrs, rem = divmod(mins, 60)
    if hrs > 0:
        return f"{hrs}h {rem}m"
    return f"{rem}m"


class _RosterEntry:
    def __init__(self, name: str, role: str, joined: str):
        self.name = name
        self.role = role
        self.joined = joined
        self.left: Optional[str] = None


def build_roster(events: List[ArchiveEvent]) -> List[_RosterEntry]:
    roster: Dict[str, _RosterEntry] = {}
    for ev in events:
        if isinstance(ev, ParticipantJoinEvent) and ev.name:
            if ev.name not in roster:
                roster[ev.name] = _RosterEntry(
                    ev.name, ev.role or "Participant", ev.timestamp
                )
        elif isinstance(ev, ParticipantLeaveEvent) and ev.name:
            entry = roster.get(ev.name)
            if entry:
                entry.left = ev.timestamp
    return list(roster.values())


def _participants_html(events: List[ArchiveEvent]) -> str:
    roster = build_roster(events)
    if not roster:
        return '<p class="empty-state">No participant data recorded</p>'

    rows = []
    for entry in roster:
        left = (
            format_time(entry.left)
            if entry.left
            else '<span class="present-badge">Present</span>'
        )
        rows.append(
            "\n      <tr>"
            f"\n        <td>{_esc(entry.name)}</td>"
            f"\n        <td>{_esc(entry.role)}</td>"
            f"\n        <td>{format_time(entry.joined)}</td>"
            f"\n        <td>{left}</td>"
            "\n      </tr>"
        )
    return (
        '\n    <table class="participants-table">'
        "\n      <thead>"
        "\n        <tr>"
        "\n          <th>Name</th>"
        "\n          <th>Role</th>"
        "\n          <th>Joined</th>"
        "\n          <th>Left</th>"
        "\n        </tr>"
        "\n      </thead>"
        f"\n      <tbody>{''.join(rows)}</tbody>"
        "\n    </table>"
    )


def describe_event(ev: ArchiveEvent) -> str:
    if isinstance(ev, ParticipantJoinEvent):
        desc = f"<strong>{_esc(ev.name or 'Someone')}</strong> joined"
        if ev.role:
            desc += f" as {_esc(ev.role)}"
        return desc
    if isinstance(ev, ParticipantLeaveEvent):
        return f"<strong>{_esc(ev.name or 'Someone')}</strong> left"
    if isinstance(ev, ReactionEvent):
        if ev.name:
            desc = f"<strong>{_esc(ev.name)}</strong> reacted"
            if ev.emoji:
                desc += f" with {_esc(ev.emoji)}"
            return desc
        return f"Reaction: {_esc(ev.emoji)}" if ev.emoji else "Reaction"
    if isinstance(ev, FeedbackEvent):
        who = _esc(ev.name) if ev.name else "Someone"
        return f"<strong>{who}</strong> gave feedback: {_esc(ev.feedback)}"
    if isinstance(ev, SpeakerChangeEvent):
        names = [s.name for s in ev.speakers if s.name]
        if not names:
            return "Speaker changed"
        joined = ", ".join(f"<strong>{_esc(name)}</strong>" for name in names)
        return f"{joined} started speaking"
    if isinstance(ev, ScreenshotEvent):
        desc = "Screenshot captured"
        if ev.trigger:
            desc += f" ({_esc(ev.trigger)})"
        if ev.participant_count:
            desc += f" &mdash; {_plural(ev.participant_count, 'participant')}"
        return desc
    return _esc(getattr(ev, "type", "event"))


def _timeline_html(events: List[ArchiveEvent]) -> str:
    if not events:
        return '<p class="empty-state">No events recorded</p>'

    items = []
    for ev in events:
        color = EVENT_COLORS.get(ev.type, DEFAULT_COLOR)
        icon = EVENT_ICONS.get(ev.type, "&#x2022;")
        items.append(
            f'\n      <div class="timeline-item" style="--event-color: {color}">'
            f'\n        <div class="timeline-dot">{icon}</div>'
            '\n        <div class="timeline-content">'
            f'\n          <span class="timeline-time">{format_time(ev.timestamp)}</span>'
            f'\n          <span class="timeline-desc">{describe_event(ev)}</span>'
            "\n        </div>"
            "\n      </div>"
        )
    return f'<div class="timeline">{"".join(items)}</div>'


def _gallery_html(screenshots: List[ScreenshotRecord]) -> str:
    if not screenshots:
        return '<p class="empty-state">No screenshots captured</p>'

    cards = []
    for index, shot in enumerate(screenshots):
        color = TRIGGER_COLORS.get(shot.trigger, DEFAULT_COLOR)
        cards.append(
            f'\n      <div class="gallery-card" onclick="openLightbox({index})">'
            '\n        <div class="gallery-img-wrap">'
            f'\n          <img src="images/{_esc(shot.filename)}" alt="Screenshot" loading="lazy" />'
            "\n        </div>"
            '\n        <div class="gallery-meta">'
            f'\n          <span class="gallery-time">{format_time(shot.timestamp)}</span>'
            f'\n          <span class="trigger-badge" style="background: {color}">{_esc(shot.trigger)}</span>'
            f'\n          <span class="gallery-participants">{_plural(shot.participant_count, "participant")}</span>'
            "\n        </div>"
            "\n      </div>"
        )
    return f'<div class="gallery-grid">{"".join(cards)}</div>'


def _script_json(value: object) -> str:
    # Keep "</script>" sequences out of the inline script block.
    return json.dumps(value, separators=(",", ":")).replace("</", "<\\/")


def build_archive_html(data: ArchiveData) -> str:
    meeting = data.meeting
    names = {
        ev.name for ev in data.events if isinstance(ev, ParticipantJoinEvent) and ev.name
    }
    values = {
        "topic": _esc(meeting.topic),
        "date": _esc(format_date(meeting.start_time)),
        "start_time": _esc(format_time(meeting.start_time)),
        "duration": _esc(format_duration(meeting.start_time, meeting.end_time)),
        "participant_count": _plural(len(names), "participant"),
        "screenshot_count": _plural(len(data.screenshots), "screenshot"),
        "participants": _participants_html(data.events),
        "timeline": _timeline_html(data.events),
        "gallery": _gallery_html(data.screenshots),
        "screenshots_json": _script_json(
            [{"filename": shot.filename} for shot in data.screenshots]
        ),
    }
    # Single pass, so placeholder-like text inside values is left alone.
    return _PLACEHOLDER.sub(lambda m: values[m.group(1)], ARCHIVE_TEMPLATE)


_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")

ARCHIVE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{{topic}} - Moment Archive</title>
  <style>
    *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }

    :root {
      --bg: #0f0f1a;
      --bg-card: #1a1a2e;
      --bg-card-hover: #222240;
      --text: #e2e8f0;
      --text-muted: #94a3b8;
      --border: #2d2d4a;
      --primary: #6366f1;
      --primary-end: #8b5cf6;
      --success: #10b981;
    }

    @media (prefers-color-scheme: light) {
      :root {
        --bg: #f8fafc;
        --bg-card: #ffffff;
        --bg-card-hover: #f1f5f9;
        --text: #1e293b;
        --text-muted: #64748b;
        --border: #e2e8f0;
      }
    }

    body {
      font-family: system-ui, -apple-system, "Segoe UI", sans-serif;
      background: var(--bg);
      color: var(--text);
      line-height: 1.6;
      min-height: 100vh;
    }

    .container { max-width: 1100px; margin: 0 auto; padding: 2rem 1.5rem; }
    .header { text-align: center; padding: 3rem 0 2rem; }

    .logo {
      display: inline-flex;
      align-items: center;
      justify-content: center;
      width: 48px;
      height: 48px;
      border-radius: 12px;
      background: linear-gradient(135deg, var(--primary), var(--primary-end));
      color: #fff;
      font-size: 1.5rem;
      font-weight: 700;
      margin-bottom: 1rem;
    }

    .header h1 { font-size: 2.25rem; font-weight: 700; margin-bottom: 0.75rem; }

    .meta {
      display: flex;
      justify-content: center;
      gap: 2rem;
      flex-wrap: wrap;
      color: var(--text-muted);
      font-size: 0.95rem;
    }

    .meta-item { display: flex; align-items: center; gap: 0.4rem; }
    .section { margin-top: 2.5rem; }

    .section-title {
      font-size: 1.25rem;
      font-weight: 600;
      margin-bottom: 1rem;
      padding-bottom: 0.5rem;
      border-bottom: 1px solid var(--border);
    }

    .participants-table { width: 100%; border-collapse: collapse; font-size: 0.9rem; }

    .participants-table th,
    .participants-table td {
      text-align: left;
      padding: 0.75rem 1rem;
      border-bottom: 1px solid var(--border);
    }

    .participants-table th {
      color: var(--text-muted);
      font-weight: 500;
      font-size: 0.8rem;
      text-transform: uppercase;
    }

    .participants-table tr:hover td { background: var(--bg-card-hover); }

    .present-badge {
      display: inline-block;
      padding: 0.15rem 0.6rem;
      border-radius: 9999px;
      background: rgba(16, 185, 129, 0.15);
      color: var(--success);
      font-size: 0.8rem;
    }

    .timeline { display: flex; flex-direction: column; max-height: 500px; overflow-y: auto; }

    .timeline-item {
      display: flex;
      align-items: flex-start;
      gap: 0.75rem;
      padding: 0.6rem 0 0.6rem 1rem;
      border-left: 3px solid var(--event-color, var(--primary));
    }

    .timeline-dot { flex-shrink: 0; font-size: 1rem; line-height: 1; }
    .timeline-content { display: flex; flex-wrap: wrap; gap: 0.5rem; align-items: baseline; }

    .timeline-time {
      font-size: 0.8rem;
      color: var(--text-muted);
      font-variant-numeric: tabular-nums;
      min-width: 70px;
    }

    .timeline-desc { font-size: 0.9rem; }

    .gallery-grid {
      display: grid;
      grid-template-columns: repeat(auto-fill, minmax(280px, 1fr));
      gap: 1.25rem;
    }

    .gallery-card {
      background: var(--bg-card);
      border: 1px solid var(--border);
      border-radius: 12px;
      overflow: hidden;
      cursor: pointer;
    }

    .gallery-img-wrap { aspect-ratio: 16 / 10; overflow: hidden; background: #000; }
    .gallery-img-wrap img { width: 100%; height: 100%; object-fit: cover; display: block; }

    .gallery-meta {
      padding: 0.75rem 1rem;
      display: flex;
      align-items: center;
      gap: 0.5rem;
      font-size: 0.85rem;
    }

    .gallery-time { color: var(--text-muted); font-variant-numeric: tabular-nums; }

    .trigger-badge {
      display: inline-block;
      padding: 0.1rem 0.5rem;
      border-radius: 9999px;
      color: #fff;
      font-size: 0.75rem;
      text-transform: capitalize;
    }

    .gallery-participants { margin-left: auto; color: var(--text-muted); font-size: 0.8rem; }

    .lightbox {
      display: none;
      position: fixed;
      inset: 0;
      background: rgba(0, 0, 0, 0.9);
      z-index: 1000;
      align-items: center;
      justify-content: center;
    }

    .lightbox.active { display: flex; }
    .lightbox img { max-width: 95vw; max-height: 90vh; border-radius: 8px; }

    .lightbox-nav, .lightbox-close {
      position: absolute;
      background: rgba(255, 255, 255, 0.15);
      border: none;
      color: #fff;
      border-radius: 50%;
      cursor: pointer;
      width: 48px;
      height: 48px;
      font-size: 1.5rem;
    }

    .lightbox-nav { top: 50%; transform: translateY(-50%); }
    .lightbox-prev { left: 1rem; }
    .lightbox-next { right: 1rem; }
    .lightbox-close { top: 1rem; right: 1rem; }

    .footer { text-align: center; padding: 3rem 0 2rem; color: var(--text-muted); font-size: 0.85rem; }
    .empty-state { color: var(--text-muted); font-style: italic; padding: 1rem 0; }

    @media (max-width: 640px) {
      .header h1 { font-size: 1.5rem; }
      .meta { gap: 1rem; font-size: 0.85rem; }
      .gallery-grid { grid-template-columns: 1fr; }
      .container { padding: 1rem; }
    }
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <div class="logo">M</div>
      <h1>{{topic}}</h1>
      <div class="meta">
        <div class="meta-item"><span>&#x1F4C5;</span><span>{{date}}</span></div>
        <div class="meta-item"><span>&#x1F552;</span><span>{{start_time}} &mdash; {{duration}}</span></div>
        <div class="meta-item"><span>&#x1F465;</span><span>{{participant_count}}</span></div>
        <div class="meta-item"><span>&#x1F4F7;</span><span>{{screenshot_count}}</span></div>
      </div>
    </div>

    <div class="section">
      <h2 class="section-title">Participants</h2>
      {{participants}}
    </div>

    <div class="section">
      <h2 class="section-title">Timeline</h2>
      {{timeline}}
    </div>

    <div class="section">
      <h2 class="section-title">Screenshots</h2>
      {{gallery}}
    </div>
  </div>

  <div class="lightbox" id="lightbox" onclick="closeLightbox(event)">
    <button class="lightbox-close" onclick="closeLightbox(event)">&#x2715;</button>
    <button class="lightbox-nav lightbox-prev" onclick="navLightbox(event, -1)">&#x2039;</button>
    <img id="lightbox-img" src="" alt="Screenshot" />
    <button class="lightbox-nav lightbox-next" onclick="navLightbox(event, 1)">&#x203A;</button>
  </div>

  <div class="footer">Generated by <strong>Moment</strong></div>

  <script>
    var screenshots = {{screenshots_json}};
    var currentIndex = 0;

    function openLightbox(index) {
      currentIndex = index;
      document.getElementById('lightbox-img').src = 'images/' + screenshots[index].filename;
      document.getElementById('lightbox').classList.add('active');
      document.body.style.overflow = 'hidden';
    }

    function closeLightbox(e) {
      if (e.target === document.getElementById('lightbox') || e.currentTarget.classList.contains('lightbox-close')) {
        document.getElementById('lightbox').classList.remove('active');
        document.body.style.overflow = '';
      }
    }

    function navLightbox(e, dir) {
      e.stopPropagation();
      currentIndex = (currentIndex + dir + screenshots.length) % screenshots.length;
      document.getElementById('lightbox-img').src = 'images/' + screenshots[currentIndex].filename;
    }

    document.addEventListener('keydown', function(e) {
      var lb = document.getElementById('lightbox');
      if (!lb.classList.contains('active')) return;
      if (e.key === 'Escape') {
        lb.classList.remove('active');
        document.body.style.overflow = '';
      } else if (e.key === 'ArrowLeft') {
        navLightbox(e, -1);
      } else if (e.key === 'ArrowRight') {
        navLightbox(e, 1);
      }
    });
  </script>
</body>
</html>
"""
