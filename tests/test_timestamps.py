"""Tests for sync stamp parsing, ordering and the push clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from timestamps import EPOCH, SyncClock, format_stamp, is_newer, parse_stamp

T0 = "2026-03-02T08:30:00.000Z"
T1 = "2026-03-02T08:30:01.000Z"


class TestFormatAndParse:
    def test_format_truncates_to_milliseconds(self):
        moment = datetime(2026, 3, 2, 8, 30, 0, 123456, tzinfo=timezone.utc)
        assert format_stamp(moment) == "2026-03-02T08:30:00.123Z"

    def test_format_converts_to_utc(self):
        kst = timezone(timedelta(hours=9))
        assert format_stamp(datetime(2026, 3, 2, 17, 30, tzinfo=kst)) == T0

    def test_parse_z_suffix(self):
        assert parse_stamp(T0) == datetime(2026, 3, 2, 8, 30, tzinfo=timezone.utc)

    def test_parse_offset(self):
        assert parse_stamp("2026-03-02T17:30:00+09:00") == parse_stamp(T0)

    def test_parse_naive_is_utc(self):
        assert parse_stamp("2026-03-02T08:30:00") == parse_stamp(T0)

    def test_parse_epoch_millis(self):
        assert parse_stamp(1000) == EPOCH + timedelta(seconds=1)
        assert parse_stamp("1000") == EPOCH + timedelta(seconds=1)

    def test_missing_is_epoch(self):
        assert parse_stamp(None) == EPOCH
        assert parse_stamp("") == EPOCH

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_stamp("yesterday-ish")

    @pytest.mark.parametrize("value", [
        "99999999999999999999",
        10 ** 20,
        "9999-12-31T23:59:59.999Z",
        "1969-12-31T23:59:59.999Z",
    ])
    def test_out_of_range_raises(self, value):
        with pytest.raises(ValueError):
            parse_stamp(value)

    def test_round_trip(self):
        assert format_stamp(parse_stamp(T1)) == T1


class TestIsNewer:
    def test_strictly_later(self):
        assert is_newer(T1, T0)

    def test_equal_is_not_newer(self):
        assert not is_newer(T0, T0)

    def test_older_is_not_newer(self):
        assert not is_newer(T0, T1)

    def test_anything_beats_empty(self):
        assert is_newer(T0, "")

    def test_compares_instants_not_strings(self):
        # Lexically larger, chronologically earlier.
        assert not is_newer("2026-03-02T17:30:00.000+09:00", "2026-03-02T08:30:00.001Z")

    def test_unreadable_candidate_is_ignored(self):
        assert not is_newer("not a stamp", T0)

    def test_out_of_range_candidate_is_ignored(self):
        assert not is_newer("99999999999999999999", T0)
        assert not is_newer("9999-12-31T23:59:59.999Z", T0)


class TestSyncClock:
    def test_uses_current_time(self):
        clock = SyncClock(now=lambda: datetime(2026, 3, 2, 8, 30, 0, 999999, tzinfo=timezone.utc))
        assert clock.next_stamp() == "2026-03-02T08:30:00.999Z"

    def test_strictly_after_previous_stamp(self):
        frozen = SyncClock(now=lambda: parse_stamp(T0))
        first = frozen.next_stamp(after=T0)
        second = frozen.next_stamp(after=first)
        assert is_newer(first, T0)
        assert is_newer(second, first)

    def test_clock_behind_previous_stamp(self):
        behind = SyncClock(now=lambda: datetime(2020, 1, 1, tzinfo=timezone.utc))
        assert behind.next_stamp(after=T1) == "2026-03-02T08:30:01.001Z"

    def test_out_of_range_previous_stamp_falls_back_to_now(self):
        clock = SyncClock(now=lambda: parse_stamp(T0))
        assert clock.next_stamp(after="9999-12-31T23:59:59.999Z") == T0
