import threading

import pytest

from imgtools.snowid import IdGenerator, next_id


def test_ids_strictly_increase():
    generator = IdGenerator(1, 12)
    ids = [generator.next_id() for _ in range(2000)]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)


def test_small_sequence_space_still_unique():
    generator = IdGenerator(2, 3)
    ids = [generator.next_id() for _ in range(60)]
    assert len(set(ids)) == 60
    assert ids == sorted(ids)


def test_worker_id_is_embedded():
    generator = IdGenerator(5, 12)
    value = generator.next_id()
    assert (value >> 12) & 0x3F == 5


def test_invalid_worker_id():
    with pytest.raises(ValueError):
        IdGenerator(64, 12)
    with pytest.raises(ValueError):
        IdGenerator(-1, 12)


def test_invalid_seq_bit_length():
    with pytest.raises(ValueError):
        IdGenerator(1, 2)
    with pytest.raises(ValueError):
        IdGenerator(1, 22)


def test_module_next_id_increases():
    first = next_id()
    second = next_id()
    assert first > 0
    assert second > first


def test_unique_across_threads():
    generator = IdGenerator(3, 12)
    results = []
    lock = threading.Lock()

    def worker():
        local = [generator.next_id() for _ in range(500)]
        with lock:
            results.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    after = generator.next_id()
    assert len(results) == 2000
    assert len(set(results)) == 2000
    assert after > max(results)