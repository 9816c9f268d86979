import unittest

from client.api import PersistenceFailure
from client.controller import ReorderController
from client.store import ItemStore
from models.task import Task
from services.ordering import OrderScope
from tests.fakes import FlaskClientApi
from tests.utils.db import DatabaseTestCase


class ControllerIntegrationTestCase(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        response = self.client.post("/projects", json={"name": "Garden"})
        self.project_id = response.get_json()["project"]["id"]
        self.task_ids = [self._create_task(title) for title in ("Dig", "Plant", "Water")]
        self.scope = OrderScope.build("task", project_id=self.project_id)
        self.api = FlaskClientApi(self.client)
        self.controller = ReorderController(self.api, ItemStore("task"), sleep=lambda _: None)
        self.controller.refresh(self.scope)
        self.api.requests.clear()

    def _create_task(self, title, **extra):
        response = self.client.post("/tasks", json={"title": title, "project_id": self.project_id, **extra})
        return response.get_json()["task"]["id"]

    def _server_sequence(self, scope=None):
        return [(item["id"], item["order"]) for item in self.api.list_items("task", scope or self.scope)]

    def _local_sequence(self, scope=None):
        return [(item["id"], item["order"]) for item in self.controller.visible_items(scope or self.scope)]

    def test_refresh_loads_server_order(self):
        self.assertEqual(
            self._local_sequence(),
            list(zip(self.task_ids, [1000.0, 2000.0, 3000.0])),
        )

    def test_drop_persists_single_order(self):
        dig, plant, water = self.task_ids

        self.controller.reorder(plant, self.scope, 0)

        self.assertEqual(self.api.requests, [("PUT", f"/tasks/{plant}/order", {"order": 500.0})])
        self.assertEqual(self._local_sequence(), [(plant, 500.0), (dig, 1000.0), (water, 3000.0)])
        self.assertEqual(self._server_sequence(), self._local_sequence())

    def test_failed_drop_reverts_and_matches_server(self):
        dig, plant, water = self.task_ids
        before = self._local_sequence()
        self.client.delete(f"/tasks/{water}")

        with self.assertRaises(PersistenceFailure) as context:
            self.controller.reorder(water, self.scope, 0)

        self.assertEqual(context.exception.status_code, 404)
        self.assertEqual(self._local_sequence(), before)

        self.controller.refresh(self.scope)
        self.assertEqual(self._local_sequence(), [(dig, 1000.0), (plant, 2000.0)])

    def test_move_to_section_sends_scope(self):
        response = self.client.post("/task-sections", json={"title": "Beds", "project_id": self.project_id})
        section_id = response.get_json()["section"]["id"]
        section_scope = OrderScope.build("task", project_id=self.project_id, section_id=section_id)
        dig = self.task_ids[0]

        self.controller.reorder(dig, section_scope, 0)

        task = self.db.session.get(Task, dig)
        self.assertEqual(task.section_id, section_id)
        self.assertEqual(task.order, 1000.0)
        self.assertEqual(self._server_sequence(section_scope), [(dig, 1000.0)])
        self.assertEqual(self._server_sequence(), self._local_sequence())

    def test_exhausted_gap_renumbers_on_server(self):
        tight = self._create_task("Mulch", order=3000.0000000001)
        self.controller.refresh(self.scope)
        dig, plant, water = self.task_ids

        result = self.controller.reorder(dig, self.scope, 2)

        self.assertTrue(result.renumbered)
        self.assertEqual(self.api.requests[-1][:2], ("PUT", "/tasks/reorder"))
        expected = [(plant, 1000.0), (water, 2000.0), (dig, 3000.0), (tight, 4000.0)]
        self.assertEqual(self._local_sequence(), expected)
        self.assertEqual(self._server_sequence(), expected)

    def test_reorder_all_uses_batch_endpoint(self):
        dig, plant, water = self.task_ids

        self.controller.reorder_all(self.scope, [water, plant, dig])

        self.assertEqual([request[:2] for request in self.api.requests], [("PUT", "/tasks/orders")])
        self.assertEqual([item_id for item_id, _ in self._server_sequence()], [water, plant, dig])
        self.assertEqual(self._server_sequence(), self._local_sequence())


if __name__ == "__main__":
    unittest.main()
