"""Tests for id allocation."""

import sqlite3
import threading

import pytest

from trailwriter.core.ids import IdAllocator


@pytest.fixture
def conn():
    """In-memory database with just the id-bearing tables."""
    connection = sqlite3.connect(":memory:")
    connection.execute("CREATE TABLE element (id INTEGER PRIMARY KEY)")
    connection.execute("CREATE TABLE source_location (id INTEGER PRIMARY KEY)")
    yield connection
    connection.close()


class TestIdAllocator:
    """Tests for IdAllocator."""

    def test_ids_start_at_one_and_increase(self) -> None:
        """Fresh allocators hand out 1, 2, 3..."""
        allocator = IdAllocator()
        assert [allocator.next() for _ in range(3)] == [1, 2, 3]
        assert allocator.peek() == 4

    def test_start_must_be_positive(self) -> None:
        """Zero is never a valid id."""
        with pytest.raises(ValueError):
            IdAllocator(0)

    def test_seeded_from_empty_tables(self, conn: sqlite3.Connection) -> None:
        """An empty database starts at 1."""
        assert IdAllocator.seeded(conn).peek() == 1

    def test_seeded_past_highest_id(self, conn: sqlite3.Connection) -> None:
        """Seeding looks at every table drawing from the allocator."""
        conn.execute("INSERT INTO element(id) VALUES (4)")
        conn.execute("INSERT INTO source_location(id) VALUES (9)")
        assert IdAllocator.seeded(conn).next() == 10

    def test_concurrent_allocation_is_unique(self) -> None:
        """Parallel callers never receive the same id."""
        allocator = IdAllocator()
        results: list[list[int]] = [[] for _ in range(8)]

        def worker(bucket: list[int]) -> None:
            for _ in range(500):
                bucket.append(allocator.next())

        threads = [threading.Thread(target=worker, args=(bucket,)) for bucket in results]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        issued = [value for bucket in results for value in bucket]
        assert len(set(issued)) == 8 * 500
        assert max(issued) == 8 * 500

    def test_sync_skips_ids_stored_elsewhere(self, conn: sqlite3.Connection) -> None:
        """Ids written by another writer are never handed out again."""
        allocator = IdAllocator.seeded(conn)
        conn.execute("INSERT INTO element(id) VALUES (1)")
        conn.execute("INSERT INTO element(id) VALUES (2)")
        allocator.sync(conn)
        assert allocator.next() == 3

    def test_sync_never_moves_backwards(self, conn: sqlite3.Connection) -> None:
        """Ids already issued stay consumed even if nothing was stored."""
        allocator = IdAllocator(10)
        allocator.sync(conn)
        assert allocator.peek() == 10
