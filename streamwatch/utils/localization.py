"""
Message labels and duration formatting for the supported languages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

DEFAULT_LANGUAGE = "en"


@dataclass(frozen=True)
class Localization:
    """Label set used when composing notification text."""

    started_streaming: str
    is_live: str
    stream_ended: str
    button_text: str
    peak: str
    viewers: str
    avg: str
    clips: str
    growing: str
    steady: str
    dropping: str


LOCALIZATIONS: Dict[str, Localization] = {
    "en": Localization(
        started_streaming="LIVE",
        is_live="LIVE",
        stream_ended="OFFLINE",
        button_text="Watch",
        peak="peak",
        viewers="viewers",
        avg="avg",
        clips="clips",
        growing="growing",
        steady="steady",
        dropping="dropping",
    ),
    "ru": Localization(
        started_streaming="LIVE",
        is_live="LIVE",
        stream_ended="OFFLINE",
        button_text="Смотреть",
        peak="пик",
        viewers="зрителей",
        avg="среднее",
        clips="клипов",
        growing="растёт",
        steady="стабильно",
        dropping="падает",
    ),
}


def get_localization(language: str) -> Localization:
    """Return the label set for a language, falling back to English."""
    return LOCALIZATIONS.get(language, LOCALIZATIONS[DEFAULT_LANGUAGE])


def format_duration(seconds: float, language: str) -> str:
    """
    Format a duration as hours and minutes.

    Args:
        seconds: Elapsed time in seconds (negative values count as zero)
        language: Language code

    Returns:
        e.g. "2 h 15 m" / "15 m" (en), "2 ч 15 мин" / "15 мин" (ru)
    """
    total_minutes = int(max(seconds, 0) // 60)
    hours, minutes = divmod(total_minutes, 60)

    if language == "ru":
        if hours > 0:
            return f"{hours} ч {minutes} мин"
        return f"{minutes} мин"
    if hours > 0:
        return f"{hours} h {minutes} m"
    return f"{minutes} m"
