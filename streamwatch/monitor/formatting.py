"""
Notification text for the three session messages (start, update, end).

All functions are pure. Output is Telegram HTML; every piece of user-supplied
text is escaped before it is embedded.
"""

from __future__ import annotations

import html
from typing import List, Optional, Sequence

from streamwatch.monitor.metrics import ViewerTrend, viewer_trend
from streamwatch.schemas.stream import ClipInfo, StreamSnapshot, ViewerDataPoint
from streamwatch.utils.localization import Localization

SEPARATOR = " · "
HEADER_SEPARATOR = " • "
BLOCK_SEPARATOR = "\n\n"


def escape_html(text: str) -> str:
    """Escape the characters Telegram's HTML mode reserves: & < >"""
    return html.escape(text, quote=False)


def format_viewers(count: int) -> str:
    """Abbreviate a viewer count: 950, 1.5K, 25K, 2.5M, 12M."""
    if count >= 1_000_000:
        value = count / 1_000_000
        if value >= 10:
            return f"{value:.0f}M"
        return f"{value:.1f}M"
    if count >= 10_000:
        return f"{count / 1000:.0f}K"
    if count >= 1000:
        return f"{count / 1000:.1f}K"
    return str(count)


def format_tags(tags: Sequence[str]) -> str:
    return " ".join(f"#{tag}" for tag in tags if tag)


def format_clips(clips: Sequence[ClipInfo]) -> str:
    links = [
        f'<a href="{html.escape(clip.url)}">{escape_html(clip.title)}</a>'
        for clip in clips
    ]
    return SEPARATOR.join(links)


def trend_label(trend: Optional[ViewerTrend], loc: Localization) -> str:
    if trend is None:
        return ""
    return {
        ViewerTrend.GROWING: loc.growing,
        ViewerTrend.STEADY: loc.steady,
        ViewerTrend.DROPPING: loc.dropping,
    }[trend]


def _header(channel: str, label: str, game: str) -> str:
    line = f"<b>{escape_html(channel)}</b>{HEADER_SEPARATOR}{label}"
    if game:
        line += f"{HEADER_SEPARATOR}{escape_html(game)}"
    return line


def _title(title: str) -> str:
    return f"<i>{escape_html(title)}</i>" if title else ""


def _join_blocks(blocks: List[str]) -> str:
    return BLOCK_SEPARATOR.join(block for block in blocks if block)


def format_start_message(snapshot: StreamSnapshot, loc: Localization) -> str:
    return _join_blocks([
        _header(snapshot.channel, loc.started_streaming, snapshot.game),
        _title(snapshot.title),
        format_tags(snapshot.tags),
    ])


def format_update_message(
    snapshot: StreamSnapshot,
    avg_viewers: int,
    history: Sequence[ViewerDataPoint],
    clips: Sequence[ClipInfo],
    loc: Localization,
) -> str:
    """
    Periodic refresh while live.

    Stats line: uptime · "<now> viewers[, <avg> avg][ · trend]". The average is
    shown only when it differs from the current count; the trend only once the
    history is long enough to classify.
    """
    stats: List[str] = []
    if snapshot.uptime:
        stats.append(snapshot.uptime)
    if snapshot.viewers > 0:
        viewers = f"{format_viewers(snapshot.viewers)} {loc.viewers}"
        if avg_viewers > 0 and avg_viewers != snapshot.viewers:
            viewers += f", {format_viewers(avg_viewers)} {loc.avg}"
        trend = trend_label(viewer_trend(history), loc)
        if trend:
            viewers += f"{SEPARATOR}{trend}"
        stats.append(viewers)

    return _join_blocks([
        _header(snapshot.channel, loc.is_live, snapshot.game),
        _title(snapshot.title),
        SEPARATOR.join(stats),
        format_clips(clips),
        format_tags(snapshot.tags),
    ])


def format_end_message(
    channel: str,
    duration: str,
    avg_viewers: int,
    peak: int,
    game: str,
    title: str,
    tags: Sequence[str],
    clips: Sequence[ClipInfo],
    loc: Localization,
) -> str:
    """Final summary: duration · "<avg> avg[, <peak> peak]" · "<n> clips"."""
    stats: List[str] = []
    if duration:
        stats.append(duration)
    if avg_viewers > 0:
        viewers = f"{format_viewers(avg_viewers)} {loc.avg}"
        if peak > avg_viewers:
            viewers += f", {format_viewers(peak)} {loc.peak}"
        stats.append(viewers)
    if clips:
        stats.append(f"{len(clips)} {loc.clips}")

    return _join_blocks([
        _header(channel, loc.stream_ended, game),
        _title(title),
        SEPARATOR.join(stats),
        format_clips(clips),
        format_tags(tags),
    ])
