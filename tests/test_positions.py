# tests/test_positions.py

from django.test import SimpleTestCase

from apps.board.positions import (
    PositionUpdate,
    next_position,
    position_between,
    reindex,
)


class ReindexTests(SimpleTestCase):

    def test_spaced_positions_in_given_order(self):
        self.assertEqual(
            reindex([7, 3, 9]),
            [PositionUpdate(7, 0), PositionUpdate(3, 1000), PositionUpdate(9, 2000)]
        )

    def test_duplicates_keep_first_slot(self):
        self.assertEqual([u.id for u in reindex([4, 2, 4, 1])], [4, 2, 1])
        self.assertEqual(reindex([4, 2, 4, 1])[-1].position, 2000)

    def test_empty(self):
        self.assertEqual(reindex([]), [])


class PositionBetweenTests(SimpleTestCase):

    def test_midpoint(self):
        self.assertEqual(position_between(1000, 2000), 1500)
        self.assertEqual(position_between(0, 3), 1)

    def test_edges(self):
        self.assertEqual(position_between(None, 0), -1000)
        self.assertEqual(position_between(2000, None), 3000)
        self.assertEqual(position_between(None, None), 0)

    def test_no_room_left(self):
        self.assertIsNone(position_between(1000, 1001))
        self.assertIsNone(position_between(1000, 1000))
        self.assertIsNone(position_between(1000, 0))

    def test_next_position(self):
        self.assertEqual(next_position(None), 0)
        self.assertEqual(next_position(2000), 3000)
