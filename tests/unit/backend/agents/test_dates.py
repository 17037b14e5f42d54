"""
Unit Tests for French date parsing.

The reference time is Monday 2 March 2026, 10:00 (see unit conftest).
"""

from datetime import datetime

import pytest

from crm.backend.agents.assistant.dates import parse_datetime


class TestRelativeDays:
    @pytest.mark.parametrize("text,expected", [
        ("demain 15h", datetime(2026, 3, 3, 15, 0)),
        ("demain", datetime(2026, 3, 3, 9, 0)),
        ("Demain  15H", datetime(2026, 3, 3, 15, 0)),
        ("aujourd'hui 18:45", datetime(2026, 3, 2, 18, 45)),
        ("aujourd’hui à 8h", datetime(2026, 3, 2, 8, 0)),
        ("après-demain 9h30", datetime(2026, 3, 4, 9, 30)),
        ("apres-demain", datetime(2026, 3, 4, 9, 0)),
    ])
    def test_relative_words(self, monday_morning, text, expected):
        assert parse_datetime(text, now=monday_morning) == expected

    def test_weekday_is_never_today(self, monday_morning):
        assert parse_datetime("lundi", now=monday_morning) == datetime(2026, 3, 9, 9, 0)

    def test_weekday_with_time(self, monday_morning):
        assert parse_datetime("vendredi à 9h30", now=monday_morning) == datetime(2026, 3, 6, 9, 30)

    def test_weekday_earlier_in_week_goes_to_next_week(self):
        thursday = datetime(2026, 3, 5, 10, 0)
        assert parse_datetime("mardi 14h", now=thursday) == datetime(2026, 3, 10, 14, 0)

    @pytest.mark.parametrize("text,expected", [
        ("lundi prochain", datetime(2026, 3, 9, 9, 0)),
        ("lundi prochain 10h", datetime(2026, 3, 9, 10, 0)),
        ("vendredi prochain à 14h30", datetime(2026, 3, 6, 14, 30)),
    ])
    def test_weekday_prochain(self, monday_morning, text, expected):
        assert parse_datetime(text, now=monday_morning) == expected


class TestOffsets:
    @pytest.mark.parametrize("text,expected", [
        ("dans 3 jours", datetime(2026, 3, 5, 9, 0)),
        ("dans 3 jours à 14h", datetime(2026, 3, 5, 14, 0)),
        ("dans 1 jour 8h15", datetime(2026, 3, 3, 8, 15)),
        ("dans 2 semaines", datetime(2026, 3, 16, 9, 0)),
        ("Dans 1 semaine à 11h", datetime(2026, 3, 9, 11, 0)),
    ])
    def test_days_and_weeks(self, monday_morning, text, expected):
        assert parse_datetime(text, now=monday_morning) == expected


class TestNumericDates:
    @pytest.mark.parametrize("text,expected", [
        ("12/03 14:00", datetime(2026, 3, 12, 14, 0)),
        ("12/03", datetime(2026, 3, 12, 9, 0)),
        ("12/03/27", datetime(2027, 3, 12, 9, 0)),
        ("1/4/2026 16h", datetime(2026, 4, 1, 16, 0)),
        ("2026-03-12T14:00", datetime(2026, 3, 12, 14, 0)),
        ("2026-03-12", datetime(2026, 3, 12, 0, 0)),
        ("2026-03-12 14:00", datetime(2026, 3, 12, 14, 0)),
    ])
    def test_formats(self, monday_morning, text, expected):
        assert parse_datetime(text, now=monday_morning) == expected

    def test_aware_iso_converted_to_local_time(self, monday_morning):
        parsed = parse_datetime("2026-03-12T13:00:00+00:00", now=monday_morning, tz="Europe/Paris")
        assert parsed == datetime(2026, 3, 12, 14, 0)


class TestUnparseable:
    @pytest.mark.parametrize("text", [
        "", "n'importe quoi", "31/02", "demain 25h", "13/13", "demain prochain", "dans trois jours",
    ])
    def test_returns_none(self, monday_morning, text):
        assert parse_datetime(text, now=monday_morning) is None
