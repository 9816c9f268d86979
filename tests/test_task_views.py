import unittest
from datetime import date, datetime

from models.task import Task
from services.task_views import tasks_for_view
from tests.utils.db import DatabaseTestCase

TODAY = date(2026, 3, 10)


class TaskViewsTestCase(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        rows = [
            ("Pay rent", datetime(2026, 3, 10, 8, 0), "pending", 3000.0),
            ("Call bank", datetime(2026, 3, 10, 17, 30), "pending", 1000.0),
            ("Dentist", datetime(2026, 3, 16, 9, 0), "pending", 2000.0),
            ("Taxes", datetime(2026, 3, 17, 9, 0), "pending", 4000.0),
            ("Learn piano", None, "pending", 5000.0),
            ("Old chore", None, "completed", 6000.0),
            ("Yesterday", datetime(2026, 3, 9, 12, 0), "pending", 7000.0),
        ]
        for title, due_date, status, order in rows:
            task = Task(title=title, due_date=due_date, order=order)
            if status == "completed":
                task.complete_task()
            self.db.session.add(task)
        self.db.session.commit()

    def _titles(self, view):
        return [task.title for task in tasks_for_view(view, today=TODAY)]

    def test_today_is_sorted_by_order(self):
        self.assertEqual(self._titles("today"), ["Call bank", "Pay rent"])

    def test_upcoming_covers_seven_days(self):
        self.assertEqual(self._titles("upcoming"), ["Call bank", "Dentist", "Pay rent"])

    def test_anytime_and_someday(self):
        self.assertEqual(self._titles("anytime"), ["Learn piano", "Old chore"])
        self.assertEqual(self._titles("someday"), ["Learn piano"])

    def test_logbook_lists_completed_tasks(self):
        self.assertEqual(self._titles("logbook"), ["Old chore"])

    def test_unknown_view_is_rejected(self):
        with self.assertRaises(ValueError):
            tasks_for_view("inbox")


if __name__ == "__main__":
    unittest.main()
