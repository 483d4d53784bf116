#!/usr/bin/env python3

from __future__ import annotations

import json
import unittest

from packages.pixelmap_core.grid.cells import ERASE_COLOR, CandidatePixel, CellStore
from packages.pixelmap_core.sync.effects import Broadcast, PersistSnapshot, SendMessage
from packages.pixelmap_core.sync.handlers import handle_client_frame, handle_connect
from packages.pixelmap_core.sync.messages import (
    MalformedMessageError,
    MessageSchemaError,
    PaintMessage,
    SnapshotMessage,
    UnknownMessageError,
    encode_message,
    parse_candidates,
    parse_message,
    parse_records,
)


def _paint(*pixels: dict) -> str:
    return json.dumps({"type": "paint", "pixels": list(pixels)})


class ParseMessageTests(unittest.TestCase):
    def test_parses_each_known_type(self) -> None:
        self.assertIsInstance(parse_message('{"type":"paint","pixels":[]}'), PaintMessage)
        snapshot = parse_message('{"type":"snapshot","gridMeters":25,"pixels":[]}')
        self.assertIsInstance(snapshot, SnapshotMessage)
        self.assertEqual(snapshot.gridMeters, 25)

    def test_rejects_malformed_json(self) -> None:
        with self.assertRaises(MalformedMessageError) as ctx:
            parse_message("{not json")
        self.assertEqual(ctx.exception.error_code, "malformed_json")
        with self.assertRaises(MalformedMessageError):
            parse_message("[1, 2]")

    def test_deeply_nested_frame_is_malformed(self) -> None:
        with self.assertRaises(MalformedMessageError) as ctx:
            parse_message("[" * 100000 + "]" * 100000)
        self.assertEqual(ctx.exception.error_code, "malformed_json")
        with self.assertRaises(MalformedMessageError):
            handle_client_frame(CellStore(), '{"type":"paint","pixels":' + "[" * 100000 + "]" * 100000 + "}")

    def test_rejects_unknown_type(self) -> None:
        with self.assertRaises(UnknownMessageError):
            parse_message('{"type":"chat","text":"hi"}')
        with self.assertRaises(UnknownMessageError):
            parse_message('{"pixels":[]}')

    def test_rejects_paint_without_pixel_list(self) -> None:
        with self.assertRaises(MessageSchemaError):
            parse_message('{"type":"paint","pixels":"nope"}')
        with self.assertRaises(MessageSchemaError):
            parse_message('{"type":"paint"}')

    def test_candidates_drop_invalid_entries_individually(self) -> None:
        candidates = parse_candidates(
            [
                {"i": 1, "j": 2, "color": "#f00", "ownerName": "Ada"},
                {"i": "1", "j": 2, "color": "#f00", "ownerName": "Ada"},
                {"i": True, "j": 2, "color": "#f00", "ownerName": "Ada"},
                {"i": float("nan"), "j": 2, "color": "#f00", "ownerName": "Ada"},
                {"i": 1, "j": 2, "color": "", "ownerName": "Ada"},
                {"i": 1, "j": 2, "color": 7, "ownerName": "Ada"},
                {"i": 1, "j": 2, "color": "#f00"},
                "not-an-object",
                {"i": 3, "j": 4, "color": "#0f0", "ownerName": "Bob", "extra": True},
            ]
        )
        self.assertEqual(
            candidates,
            [
                CandidatePixel(i=1, j=2, color="#f00", owner_name="Ada"),
                CandidatePixel(i=3, j=4, color="#0f0", owner_name="Bob"),
            ],
        )

    def test_fractional_indices_are_floored(self) -> None:
        candidates = parse_candidates(
            [
                {"i": 2.7, "j": -0.5, "color": "#f00", "ownerName": "Ada"},
                {"i": -3.2, "j": 4.0, "color": "#f00", "ownerName": "Ada"},
            ]
        )
        self.assertEqual([c.key for c in candidates], [(2, -1), (-4, 4)])

    def test_legacy_field_names_are_accepted(self) -> None:
        candidates = parse_candidates([{"i": 1, "j": 1, "color": "#f00", "playerName": "Old"}])
        self.assertEqual(candidates[0].owner_name, "Old")
        records = parse_records([{"i": 1, "j": 1, "color": "#f00", "playerName": "Old", "ts": "2020-01-01T00:00:00Z"}])
        self.assertEqual(records[0].timestamp, "2020-01-01T00:00:00Z")

    def test_records_fill_missing_timestamp(self) -> None:
        records = parse_records([{"i": 0, "j": 0, "color": "#f00", "ownerName": "Ada"}])
        self.assertEqual(len(records), 1)
        self.assertTrue(records[0].timestamp.endswith("Z"))

    def test_encode_is_compact(self) -> None:
        self.assertEqual(encode_message({"type": "paint", "pixels": []}), '{"type":"paint","pixels":[]}')


class HandlerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = CellStore()

    def test_connect_sends_full_snapshot(self) -> None:
        self.store.apply(CandidatePixel(i=1, j=1, color="#f00", owner_name="Ada"))
        effect = handle_connect(self.store, 25.0)
        self.assertIsInstance(effect, SendMessage)
        self.assertEqual(effect.message["type"], "snapshot")
        self.assertEqual(effect.message["gridMeters"], 25.0)
        self.assertEqual(len(effect.message["pixels"]), 1)
        self.assertEqual(effect.message["pixels"][0]["ownerName"], "Ada")

    def test_paint_broadcasts_and_persists(self) -> None:
        outcome = handle_client_frame(
            self.store,
            _paint(
                {"i": 10, "j": 20, "color": "#ff0000", "ownerName": "Ada"},
                {"i": 11, "j": 20, "color": "#00ff00", "ownerName": "Ada"},
            ),
        )
        self.assertTrue(outcome.changed)
        broadcast, persist = outcome.effects
        self.assertIsInstance(broadcast, Broadcast)
        self.assertIsInstance(persist, PersistSnapshot)
        self.assertEqual([(p["i"], p["j"]) for p in broadcast.message["pixels"]], [(10, 20), (11, 20)])
        self.assertEqual(len(persist.records), 2)
        self.assertEqual(self.store.get(10, 20).color, "#ff0000")

    def test_batch_with_only_invalid_entries_has_no_effects(self) -> None:
        outcome = handle_client_frame(self.store, _paint({"i": "x", "j": 0, "color": "#f00", "ownerName": "Ada"}))
        self.assertFalse(outcome.changed)
        self.assertEqual(outcome.effects, ())
        self.assertEqual(len(self.store), 0)

    def test_erase_of_empty_cell_has_no_effects(self) -> None:
        outcome = handle_client_frame(self.store, _paint({"i": 0, "j": 0, "color": ERASE_COLOR, "ownerName": "Ada"}))
        self.assertEqual(outcome.effects, ())

    def test_erase_of_painted_cell_is_broadcast(self) -> None:
        self.store.apply(CandidatePixel(i=5, j=5, color="#f00", owner_name="Ada"))
        outcome = handle_client_frame(self.store, _paint({"i": 5, "j": 5, "color": ERASE_COLOR, "ownerName": "Bob"}))
        broadcast = outcome.effects[0]
        self.assertEqual(broadcast.message["pixels"][0]["color"], ERASE_COLOR)
        self.assertEqual(outcome.effects[1].records, ())

    def test_server_only_types_from_client_are_ignored(self) -> None:
        outcome = handle_client_frame(
            self.store,
            json.dumps({"type": "pixels", "pixels": [{"i": 0, "j": 0, "color": "#f00", "ownerName": "Ada"}]}),
        )
        self.assertEqual(outcome.effects, ())
        self.assertEqual(len(self.store), 0)

    def test_protocol_errors_propagate(self) -> None:
        with self.assertRaises(MalformedMessageError):
            handle_client_frame(self.store, "garbage")


if __name__ == "__main__":
    unittest.main()
