import threading

from courier import CacheEntry, InMemoryStore, Response, default_store, shared_store


def test_storage():
    storage = InMemoryStore()

    storage.put(CacheEntry(key=("https://example.com", "GET"), value=Response(status_code=200, content=b"test")))

    entry = storage.get(("https://example.com", "GET"))
    assert entry is not None
    assert entry.value.content == b"test"
    assert storage.get(("https://example.com", "POST")) is None


def test_caller_table_is_shared_by_reference():
    table: dict = {}
    first = InMemoryStore(table)
    second = InMemoryStore(table)

    first.put(CacheEntry(key="key", value=Response(status_code=200)))

    assert second.get("key") is not None
    assert len(table) == 1


def test_remove_and_clear():
    storage = InMemoryStore()
    storage.put(CacheEntry(key=["a", 1], value=Response(status_code=200)))
    storage.put(CacheEntry(key="b", value=Response(status_code=200)))

    storage.remove(("a", 1))
    assert storage.get(["a", 1]) is None
    assert len(storage) == 1

    storage.clear()
    assert len(storage) == 0


def test_shared_store_by_name():
    assert shared_store("users") is shared_store("users")
    assert shared_store("users") is not shared_store("orders")
    assert default_store() is shared_store("default")


def test_concurrent_named_store_creation():
    seen = []

    def worker():
        seen.append(shared_store("concurrent"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert all(store is seen[0] for store in seen)
