"""Unit tests for notification message composition."""
from datetime import datetime, timedelta, timezone

import pytest

from streamwatch.monitor.formatting import (
    escape_html,
    format_clips,
    format_end_message,
    format_start_message,
    format_tags,
    format_update_message,
    format_viewers,
    trend_label,
)
from streamwatch.monitor.metrics import ViewerTrend
from streamwatch.schemas.stream import ClipInfo, ViewerDataPoint
from streamwatch.utils.localization import get_localization

EN = get_localization("en")


def history(*counts):
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return [
        ViewerDataPoint(timestamp=start + timedelta(minutes=i), count=count)
        for i, count in enumerate(counts)
    ]


@pytest.mark.unit
class TestFragments:
    """Test shared message fragments."""

    @pytest.mark.parametrize(
        "count,expected",
        [
            (0, "0"),
            (950, "950"),
            (999, "999"),
            (1000, "1.0K"),
            (1500, "1.5K"),
            (9999, "10.0K"),
            (10000, "10K"),
            (25000, "25K"),
            (1000000, "1.0M"),
            (2500000, "2.5M"),
            (12000000, "12M"),
        ],
    )
    def test_format_viewers(self, count, expected):
        assert format_viewers(count) == expected

    def test_escape_html_reserved_characters(self):
        assert escape_html('Tom & Jerry <3 "quotes" >_<') == 'Tom &amp; Jerry &lt;3 "quotes" &gt;_&lt;'

    def test_format_tags_skips_empty(self):
        assert format_tags(["English", "", "Speedrun"]) == "#English #Speedrun"
        assert format_tags([]) == ""

    def test_format_clips(self):
        clips = [
            ClipInfo(url="https://clips.twitch.tv/a", title="Fish & chips"),
            ClipInfo(url="https://clips.twitch.tv/b", title="<wow>"),
        ]
        assert format_clips(clips) == (
            '<a href="https://clips.twitch.tv/a">Fish &amp; chips</a> · '
            '<a href="https://clips.twitch.tv/b">&lt;wow&gt;</a>'
        )
        assert format_clips([]) == ""

    def test_trend_label(self):
        assert trend_label(ViewerTrend.GROWING, EN) == "growing"
        assert trend_label(ViewerTrend.DROPPING, get_localization("ru")) == "падает"
        assert trend_label(None, EN) == ""


@pytest.mark.unit
class TestStartMessage:
    """Test format_start_message."""

    def test_full_message(self, snapshot_factory):
        snapshot = snapshot_factory(title="Speedrun <any%>", tags=["English", "", "Speedrun"])
        assert format_start_message(snapshot, EN) == (
            "<b>streamer</b> • LIVE • Celeste\n\n"
            "<i>Speedrun &lt;any%&gt;</i>\n\n"
            "#English #Speedrun"
        )

    def test_minimal_message(self, snapshot_factory):
        """Test that missing game, title and tags are omitted."""
        snapshot = snapshot_factory(game="", title="", tags=[])
        assert format_start_message(snapshot, EN) == "<b>streamer</b> • LIVE"

    def test_tags_follow_header_when_title_missing(self, snapshot_factory):
        """Test that an empty title leaves no extra gap before the tag line."""
        snapshot = snapshot_factory(title="", tags=["English"])
        assert format_start_message(snapshot, EN) == "<b>streamer</b> • LIVE • Celeste\n\n#English"


@pytest.mark.unit
class TestUpdateMessage:
    """Test format_update_message."""

    def test_full_message(self, snapshot_factory):
        snapshot = snapshot_factory(title="Speedrun", viewers=1500, uptime="1 h 5 m", tags=["English"])
        clips = [ClipInfo(url="https://clips.twitch.tv/a", title="Nice & clean")]

        message = format_update_message(snapshot, 1200, history(1000, 1000, 1500, 1500), clips, EN)

        assert message == (
            "<b>streamer</b> • LIVE • Celeste\n\n"
            "<i>Speedrun</i>\n\n"
            "1 h 5 m · 1.5K viewers, 1.2K avg · growing\n\n"
            '<a href="https://clips.twitch.tv/a">Nice &amp; clean</a>\n\n'
            "#English"
        )

    def test_average_hidden_when_equal_to_current(self, snapshot_factory):
        snapshot = snapshot_factory(viewers=100, tags=[])
        message = format_update_message(snapshot, 100, history(100, 100), [], EN)
        assert "100 viewers" in message
        assert "avg" not in message

    def test_trend_omitted_for_short_history(self, snapshot_factory):
        snapshot = snapshot_factory(viewers=300)
        message = format_update_message(snapshot, 200, history(100, 300), [], EN)
        assert "300 viewers, 200 avg" in message
        for label in ("growing", "steady", "dropping"):
            assert label not in message

    def test_viewer_stats_skipped_without_viewers(self, snapshot_factory):
        snapshot = snapshot_factory(viewers=0, title="", tags=[])
        message = format_update_message(snapshot, 0, history(0, 0, 0, 0), [], EN)
        assert message == "<b>streamer</b> • LIVE • Celeste\n\n1 h 0 m"


@pytest.mark.unit
class TestEndMessage:
    """Test format_end_message."""

    def test_full_message(self):
        clips = [
            ClipInfo(url="https://clips.twitch.tv/a", title="A"),
            ClipInfo(url="https://clips.twitch.tv/b", title="B"),
        ]
        message = format_end_message(
            "streamer", "2 h 0 m", 950, 1500, "Celeste", "Speedrun", ["English"], clips, EN
        )
        assert message == (
            "<b>streamer</b> • OFFLINE • Celeste\n\n"
            "<i>Speedrun</i>\n\n"
            "2 h 0 m · 950 avg, 1.5K peak · 2 clips\n\n"
            '<a href="https://clips.twitch.tv/a">A</a> · <a href="https://clips.twitch.tv/b">B</a>\n\n'
            "#English"
        )

    def test_peak_hidden_when_not_above_average(self):
        message = format_end_message("streamer", "5 m", 40, 40, "", "", [], [], EN)
        assert message == "<b>streamer</b> • OFFLINE\n\n5 m · 40 avg"

    def test_russian_labels(self):
        message = format_end_message(
            "streamer", "1 ч 2 мин", 10, 20, "", "", [], [ClipInfo(url="u", title="t")], get_localization("ru")
        )
        assert "10 среднее, 20 пик" in message
        assert "1 клипов" in message
