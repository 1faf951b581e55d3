import unittest

from battleship.errors import IdentifierError
from battleship.services.identifiers import IdentifierPool, IdentifierSet, slot_keys


class TestIdentifierPool(unittest.TestCase):
    def test_mints_only_when_freelist_is_empty(self):
        saved = []
        pool = IdentifierPool(["a", "b"], on_new=saved.append)
        taken = {pool.take(), pool.take()}
        self.assertEqual(taken, {"a", "b"})
        self.assertEqual(saved, [])

        minted = pool.take()
        self.assertNotIn(minted, ("a", "b"))
        self.assertEqual(saved, [["a", "b", minted]])

    def test_release_returns_to_freelist(self):
        pool = IdentifierPool(["a"])
        ident = pool.take()
        self.assertEqual(pool.free_count, 0)
        pool.release(ident)
        self.assertEqual(pool.free_count, 1)
        self.assertFalse(pool.is_held(ident))
        self.assertEqual(pool.take(), "a")

    def test_release_unheld_raises(self):
        pool = IdentifierPool(["a"])
        with self.assertRaises(IdentifierError):
            pool.release("a")


class TestIdentifierSet(unittest.TestCase):
    def test_allocate_is_exclusive(self):
        pool = IdentifierPool()
        first = IdentifierSet.allocate(pool)
        second = IdentifierSet.allocate(pool)
        self.assertEqual(len(first), len(slot_keys()))
        self.assertEqual(len(first), 15)
        self.assertFalse(set(first) & set(second))
        self.assertEqual(first["p1s4"], first.ship(1, 4))
        self.assertEqual(first["p0c"], first.control(0))
        self.assertEqual(first["p1s"], first.selection(1))

    def test_double_release_raises(self):
        pool = IdentifierPool()
        ids = IdentifierSet.allocate(pool)
        ids.release(pool)
        self.assertEqual(pool.free_count, 15)
        with self.assertRaises(IdentifierError):
            ids.release(pool)
        self.assertEqual(pool.free_count, 15)

    def test_released_identifiers_are_reused(self):
        pool = IdentifierPool()
        ids = IdentifierSet.allocate(pool)
        ids.release(pool)
        again = IdentifierSet.allocate(pool)
        self.assertEqual(set(ids), set(again))
        self.assertEqual(len(pool.all_ids), 15)


if __name__ == '__main__':
    unittest.main()
