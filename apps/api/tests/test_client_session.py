#!/usr/bin/env python3

from __future__ import annotations

import json
import unittest

from packages.pixelmap_core.client.budget import BudgetScheduler
from packages.pixelmap_core.client.local_state import InMemoryLocalStateStore
from packages.pixelmap_core.client.reconciler import ClientReconciler
from packages.pixelmap_core.client.session import NAME_PALETTE, PaintSession, color_for_name
from packages.pixelmap_core.grid.cells import ERASE_COLOR, CellRecord
from packages.pixelmap_core.grid.projection import cell_center
from packages.pixelmap_core.sync.effects import RequestRender, SendMessage


def _record(i: int, j: int, color: str = "#f00", owner: str = "Ada") -> CellRecord:
    return CellRecord(i=i, j=j, color=color, owner_name=owner, timestamp="2024-01-01T00:00:00Z")


class ClientReconcilerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.reconciler = ClientReconciler()

    def test_queue_rejects_duplicate_key(self) -> None:
        self.assertTrue(self.reconciler.queue(1, 1, color="#f00", owner_name="Ada"))
        self.assertFalse(self.reconciler.queue(1, 1, color="#0f0", owner_name="Ada"))
        self.assertEqual(self.reconciler.visible(1, 1), "#f00")

    def test_queued_shadows_committed(self) -> None:
        self.reconciler.apply_snapshot([_record(2, 2, "#000", "Bob")], 25)
        self.reconciler.queue(2, 2, color="#fff", owner_name="Ada")
        self.assertEqual(self.reconciler.visible(2, 2), "#fff")
        self.assertIsNone(self.reconciler.owner_at(2, 2, viewer="Ada"))
        self.assertEqual(self.reconciler.owner_at(2, 2, viewer="Cy"), "Ada")
        self.reconciler.unqueue(2, 2)
        self.assertEqual(self.reconciler.owner_at(2, 2, viewer="Ada"), "Bob")

    def test_snapshot_discards_queue_and_adopts_grid(self) -> None:
        self.reconciler.queue(0, 0, color="#f00", owner_name="Ada")
        self.reconciler.apply_snapshot([_record(5, 5), _record(6, 6, ERASE_COLOR)], 50)
        self.assertEqual(self.reconciler.queued, {})
        self.assertEqual(list(self.reconciler.committed), [(5, 5)])
        self.assertEqual(self.reconciler.grid_meters, 50.0)

    def test_snapshot_with_bad_grid_keeps_current(self) -> None:
        self.reconciler.apply_snapshot([], "huge")
        self.assertEqual(self.reconciler.grid_meters, 25.0)

    def test_pixels_overwrite_committed_and_drop_queued(self) -> None:
        self.reconciler.apply_snapshot([_record(1, 1, "#000", "Bob")])
        self.reconciler.queue(1, 1, color="#aaa", owner_name="Ada")
        self.reconciler.queue(3, 3, color="#bbb", owner_name="Ada")
        touched = self.reconciler.apply_pixels([_record(1, 1, "#ccc", "Cy")])
        self.assertEqual(touched, [(1, 1)])
        self.assertEqual(self.reconciler.committed[(1, 1)].color, "#ccc")
        self.assertNotIn((1, 1), self.reconciler.queued)
        self.assertIn((3, 3), self.reconciler.queued)

    def test_confirmation_moves_queued_entry_to_committed(self) -> None:
        self.reconciler.apply_snapshot([_record(0, 0, "red")])
        self.reconciler.queue(1, 0, color="blue", owner_name="Ada")
        self.reconciler.apply_pixels([_record(1, 0, "blue")])
        self.assertEqual(set(self.reconciler.committed), {(0, 0), (1, 0)})
        self.assertEqual(self.reconciler.queued, {})

    def test_erase_in_pixels_removes_committed(self) -> None:
        self.reconciler.apply_snapshot([_record(1, 1)])
        self.reconciler.apply_pixels([_record(1, 1, ERASE_COLOR, "Bob")])
        self.assertNotIn((1, 1), self.reconciler.committed)
        self.assertIsNone(self.reconciler.visible(1, 1))

    def test_committed_tracks_server_regardless_of_queue(self) -> None:
        server_view: dict = {}
        updates = [_record(n % 3, 0, f"#00{n}", "Bob") for n in range(6)]
        for n, record in enumerate(updates):
            self.reconciler.queue(n % 3, 0, color="#fff", owner_name="Ada")
            self.reconciler.apply_pixels([record])
            server_view[record.key] = record
            self.assertEqual(self.reconciler.committed, server_view)


class PaintSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.local = InMemoryLocalStateStore()
        self.budget = BudgetScheduler(max_pixels=3, clock=lambda: 0.0)
        self.session = PaintSession(local_state=self.local, budget=self.budget)

    def test_color_for_name_is_stable(self) -> None:
        self.assertEqual(color_for_name("Ada"), color_for_name("Ada"))
        self.assertIn(color_for_name("Ada"), NAME_PALETTE)

    def test_start_requires_name(self) -> None:
        with self.assertRaises(ValueError):
            self.session.start("   ")
        self.assertFalse(self.session.active)

    def test_place_requires_session(self) -> None:
        self.assertEqual(self.session.place(0, 0), [])
        self.assertEqual(self.session.reconciler.queued, {})

    def test_place_consumes_and_persists_budget(self) -> None:
        self.session.start("Ada")
        effects = self.session.place(0, 0)
        self.assertEqual(effects, [RequestRender("queue")])
        self.assertEqual(self.budget.remaining, 2)
        self.assertEqual(self.local.load_remaining(), 2)
        self.assertEqual(self.session.place(0, 0), [])
        self.assertEqual(self.budget.remaining, 2)

    def test_place_blocked_when_budget_empty(self) -> None:
        self.session.start("Ada")
        for n in range(3):
            self.session.place(n, 0)
        self.assertEqual(self.session.place(9, 9), [])
        self.assertEqual(len(self.session.reconciler.queued), 3)

    def test_erase_and_cancel_refund(self) -> None:
        self.session.start("Ada")
        self.session.place(0, 0)
        self.session.place(1, 0)
        self.session.place(2, 0)
        self.session.erase(1, 0)
        self.assertEqual(self.budget.remaining, 1)
        self.assertEqual(self.session.erase(1, 0), [])
        self.session.cancel_all()
        self.assertEqual(self.budget.remaining, 3)
        self.assertEqual(self.session.reconciler.queued, {})

    def test_submit_drains_queue_into_one_paint_frame(self) -> None:
        self.session.start("Ada")
        self.session.set_color("#123456")
        self.session.place(4, 5)
        self.session.place(6, 7)
        effects = self.session.submit()
        send = effects[0]
        self.assertIsInstance(send, SendMessage)
        self.assertEqual(send.message["type"], "paint")
        self.assertEqual(
            send.message["pixels"],
            [
                {"i": 4, "j": 5, "color": "#123456", "ownerName": "Ada"},
                {"i": 6, "j": 7, "color": "#123456", "ownerName": "Ada"},
            ],
        )
        self.assertEqual(self.session.reconciler.queued, {})
        self.assertEqual(self.session.submit(), [])

    def test_click_respects_eraser(self) -> None:
        self.session.start("Ada")
        lon, lat = cell_center(8, -3)
        self.session.click_at(lon, lat)
        self.assertIn((8, -3), self.session.reconciler.queued)
        self.session.toggle_eraser()
        self.session.click_at(lon, lat)
        self.assertNotIn((8, -3), self.session.reconciler.queued)
        self.assertEqual(self.budget.remaining, 3)

    def test_restore_from_local_state(self) -> None:
        local = InMemoryLocalStateStore(display_name="Bob", remaining=1)
        session = PaintSession(local_state=local, budget=BudgetScheduler(max_pixels=3, clock=lambda: 0.0))
        self.assertTrue(session.restore())
        self.assertEqual(session.session.display_name, "Bob")
        self.assertEqual(session.budget.remaining, 1)
        self.assertFalse(PaintSession(local_state=InMemoryLocalStateStore()).restore())

    def test_reset_clears_local_state(self) -> None:
        self.session.start("Ada")
        self.session.place(0, 0)
        self.session.reset()
        self.assertFalse(self.session.active)
        self.assertIsNone(self.local.load_display_name())
        self.assertEqual(self.session.reconciler.queued, {})

    def test_unlimited_does_not_persist_budget(self) -> None:
        self.session.start("Ada")
        self.session.enable_unlimited()
        for n in range(10):
            self.session.place(n, 0)
        self.assertEqual(len(self.session.reconciler.queued), 10)
        self.assertIsNone(self.local.load_remaining())

    def test_server_frames_update_reconciler(self) -> None:
        self.session.start("Ada")
        self.session.place(1, 1)
        snapshot = json.dumps(
            {
                "type": "snapshot",
                "gridMeters": 30,
                "pixels": [{"i": 2, "j": 2, "color": "#0f0", "ownerName": "Bob", "timestamp": "t"}],
            }
        )
        self.assertEqual(self.session.handle_server_text(snapshot), [RequestRender("snapshot")])
        self.assertEqual(self.session.reconciler.queued, {})
        self.assertEqual(self.session.reconciler.grid_meters, 30.0)

        pixels = json.dumps({"type": "pixels", "pixels": [{"i": 2, "j": 2, "color": ERASE_COLOR, "ownerName": "Cy"}]})
        self.assertEqual(self.session.handle_server_text(pixels), [RequestRender("pixels")])
        self.assertEqual(self.session.reconciler.committed, {})

    def test_bad_server_frames_are_dropped(self) -> None:
        self.assertEqual(self.session.handle_server_text("nope"), [])
        self.assertEqual(self.session.handle_server_text('{"type":"mystery"}'), [])
        self.assertEqual(self.session.handle_server_text('{"type":"pixels","pixels":[{"i":"x"}]}'), [])


if __name__ == "__main__":
    unittest.main()
