import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from streaks import StreakCalculator

TODAY = datetime.date(2024, 1, 10)


def days_ago(*offsets: int) -> list[datetime.date]:
    return [TODAY - datetime.timedelta(days=o) for o in offsets]


class StreakCalculatorTestCase(unittest.TestCase):
    def test_three_day_streak(self) -> None:
        dates = days_ago(0, 1, 2)
        self.assertEqual(StreakCalculator.current_streak(dates, TODAY), 3)
        self.assertFalse(StreakCalculator.is_at_risk(dates, TODAY))

    def test_gap_stops_walk(self) -> None:
        dates = days_ago(0, 1, 3, 4, 5)
        self.assertEqual(StreakCalculator.current_streak(dates, TODAY), 2)

    def test_yesterday_only_is_at_risk(self) -> None:
        dates = days_ago(1, 2)
        self.assertEqual(StreakCalculator.current_streak(dates, TODAY), 0)
        self.assertTrue(StreakCalculator.is_at_risk(dates, TODAY))
        status = StreakCalculator.streak_status(dates, TODAY)
        self.assertEqual(status, {"current": 0, "at_risk": True, "pending": 2})

    def test_old_workouts_not_at_risk(self) -> None:
        dates = days_ago(2, 3)
        status = StreakCalculator.streak_status(dates, TODAY)
        self.assertEqual(status["current"], 0)
        self.assertFalse(status["at_risk"])

    def test_first_workout_today(self) -> None:
        status = StreakCalculator.streak_status([TODAY], TODAY)
        self.assertEqual(status["current"], 1)
        self.assertFalse(status["at_risk"])

    def test_empty(self) -> None:
        self.assertEqual(StreakCalculator.current_streak([], TODAY), 0)
        self.assertFalse(StreakCalculator.is_at_risk([], TODAY))
        self.assertEqual(StreakCalculator.longest_streak([]), 0)

    def test_time_of_day_and_duplicates_ignored(self) -> None:
        dates = [
            datetime.datetime(2024, 1, 10, 7, 30),
            datetime.datetime(2024, 1, 10, 19, 0),
            "2024-01-09T21:15:00",
            "2024-01-08",
        ]
        self.assertEqual(StreakCalculator.current_streak(dates, TODAY), 3)

    def test_longest_streak(self) -> None:
        dates = days_ago(0, 5, 6, 7, 8, 20)
        self.assertEqual(StreakCalculator.longest_streak(dates), 4)

    def test_badges(self) -> None:
        self.assertEqual(StreakCalculator.unlocked_badges(6), [])
        self.assertEqual(StreakCalculator.unlocked_badges(7), [7])
        self.assertEqual(StreakCalculator.unlocked_badges(45), [30, 7])
        self.assertEqual(StreakCalculator.unlocked_badges(100), [100, 30, 7])


if __name__ == "__main__":
    unittest.main()
