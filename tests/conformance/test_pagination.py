"""
Pagination Conformance Tests

INVARIANT: Following the cursor page by page enumerates the catalog exactly.

    concat(page_1, page_2, ..., page_n) == sorted(catalog, key=utf8 bytes)

with no gaps or duplicates, for every page size, provided the catalog is not
written between pages.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from vending import MemoryStore, AddItem, list_items, iter_catalog, MAX_PAGE_SIZE

from tests.machines import ADMIN, ctx, make_aggregated


item_names = st.text(min_size=1, max_size=8)


def _stock(names):
    store = MemoryStore()
    machine = make_aggregated(store)
    for name in names:
        machine.execute(ctx(ADMIN), AddItem(name, stock=1, price=1))
    return store


class TestPaginationProperties:

    @given(st.sets(item_names, max_size=40), st.integers(min_value=1, max_value=40))
    @settings(max_examples=100)
    def test_pages_concatenate_to_full_enumeration(self, names, page_size):
        """
        PROPERTY: Walking the cursor reproduces every name once, in byte order.
        """
        store = _stock(names)
        expected = sorted(names, key=lambda n: n.encode("utf-8"))

        seen = []
        cursor = None
        while True:
            page = [item.name for item in list_items(store, cursor, page_size)]
            assert len(page) <= min(page_size, MAX_PAGE_SIZE)
            seen.extend(page)
            if len(page) < min(page_size, MAX_PAGE_SIZE):
                break
            cursor = page[-1]

        assert seen == expected

    @given(st.sets(item_names, max_size=40))
    @settings(max_examples=50)
    def test_iter_catalog_matches_sorted_names(self, names):
        store = _stock(names)
        expected = sorted(names, key=lambda n: n.encode("utf-8"))
        assert [item.name for item in iter_catalog(store, page_size=7)] == expected

    @given(st.sets(item_names, min_size=1, max_size=20), item_names)
    @settings(max_examples=50)
    def test_cursor_is_exclusive_lower_bound(self, names, cursor):
        """
        PROPERTY: Every listed name sorts strictly after the cursor.
        """
        store = _stock(names)
        for item in list_items(store, cursor, MAX_PAGE_SIZE):
            assert item.name.encode("utf-8") > cursor.encode("utf-8")


class TestPaginationExamples:

    def test_snapshot_isolates_reader_from_writer(self, stocked_aggregated, store):
        snapshot = store.snapshot()
        stocked_aggregated.execute(ctx(ADMIN), AddItem("Espresso", stock=1, price=1))
        assert [i.name for i in list_items(snapshot)] == ["Americano", "Latte"]
        assert [i.name for i in list_items(store)] == ["Americano", "Espresso", "Latte"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
