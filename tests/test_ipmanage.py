import ipaddress
import threading
import time

import pytest

from imgtools.ipmanage import IpVisit, ip_in, ip_to_bytes, load_ip_masks


@pytest.fixture
def visits():
    return IpVisit(3, 60, 5)


@pytest.mark.parametrize("args", [(128, 60, 5), (-1, 60, 5), (3, 0, 5), (3, 3601, 5), (3, 60, 0), (3, 60, 128)])
def test_init_rejects_out_of_range(args):
    with pytest.raises(ValueError):
        IpVisit(*args)


def test_ip_to_bytes_parses_dotted_quad():
    assert ip_to_bytes("127.0.0.1") == bytes([127, 0, 0, 1])


@pytest.mark.parametrize("bad", ["127.0.0", "::1", "1.2.3.4.5", ""])
def test_ip_to_bytes_rejects_wrong_shape(bad):
    with pytest.raises(ValueError):
        ip_to_bytes(bad)


def test_add_counts_then_bans(visits):
    results = [visits.add("10.0.0.1") for _ in range(5)]
    assert results == [1, 2, 3, -5, -6]
    assert visits.is_ban("10.0.0.1") == -6


def test_add_with_malformed_ip_returns_zero(visits):
    assert visits.add("not-an-ip") == 0
    assert visits.get_len() == 0


def test_permanent_ban_is_sticky(visits):
    assert visits.add_ban_time("1.2.3.4", -128) == -128
    assert visits.add("1.2.3.4") == -128
    assert visits.get_permanent_ban_strings() == ["1.2.3.4"]


def test_add_ban_time_rejects_non_negative(visits):
    assert visits.add_ban_time("1.2.3.4", 0) == 0
    assert visits.is_ban("1.2.3.4") == 0


def test_add_ban_time_accumulates_and_clamps(visits):
    assert visits.add_ban_time("1.2.3.4", -100) == -100
    assert visits.add_ban_time("1.2.3.4", -100) == -128
    visits.add("5.6.7.8")
    assert visits.add_ban_time("5.6.7.8", -7) == -7


def test_add_ban_time_by_bytes_requires_four_bytes(visits):
    assert visits.add_ban_time_by_bytes(b"\x01\x02\x03", -5) == 0
    assert visits.add_ban_time_by_bytes(b"\x01\x02\x03\x04", -5) == -5
    assert visits.is_ban("1.2.3.4") == -5


def test_reduce_decrements(visits):
    visits.add("9.9.9.9")
    visits.add("9.9.9.9")
    assert visits.reduce("9.9.9.9") == 1


def test_is_ban_rejects_bad_ip(visits):
    with pytest.raises(ValueError):
        visits.is_ban("bad")


def test_get_all_is_sorted_and_len_matches(visits):
    for ip in ["200.1.1.1", "3.3.3.3", "3.3.3.2"]:
        visits.add(ip)
    data = visits.get_all()
    chunks = [data[i:i + 4] for i in range(0, len(data), 4)]
    assert chunks == sorted(chunks)
    assert visits.get_len() == len(chunks) == 3


def test_delete_ip(visits):
    visits.add("8.8.8.8")
    assert visits.delete_ip("8.8.8.8") is True
    assert visits.delete_ip("8.8.8.8") is False
    assert visits.is_ban("8.8.8.8") == 0
    with pytest.raises(ValueError):
        visits.delete_ip("8.8")


def test_sweep_updates_values_and_frees_memory(visits):
    empty_size = visits.size_of()
    visits.add("1.1.1.1")
    visits.add_ban_time("2.2.2.2", -3)
    visits.add_ban_time("3.3.3.3", -128)
    assert visits.size_of() > empty_size
    visits.sweep()
    assert visits.is_ban("1.1.1.1") == 0
    assert visits.is_ban("2.2.2.2") == -2
    assert visits.is_ban("3.3.3.3") == -128
    visits.delete_ip("3.3.3.3")
    visits.sweep()
    visits.sweep()
    visits.sweep()
    assert visits.get_len() == 0
    assert visits.size_of() == empty_size


def test_save_and_load_roundtrip(tmp_path, visits):
    visits.add_ban_time("4.4.4.4", -128)
    visits.add_ban_time("1.0.0.9", -128)
    visits.add_ban_time("5.5.5.5", -10)
    path = tmp_path / "ban.gz"
    visits.save_ban_ip(path)
    other = IpVisit(3, 60, 5)
    other.load_ban_ip(path)
    assert other.get_permanent_ban() == visits.get_permanent_ban()
    assert other.is_ban("5.5.5.5") == 0


def test_load_missing_file_is_ignored(tmp_path, visits):
    visits.load_ban_ip(tmp_path / "missing.gz")
    assert visits.get_len() == 0


def test_load_ip_masks_and_lookup(tmp_path):
    path = tmp_path / "cn.txt"
    path.write_text("1.0.1.0/24\n1.0.8.0/21\n27.0.0.0/8\n", encoding="utf-8")
    networks = load_ip_masks(path)
    assert networks[0] == ipaddress.ip_network("1.0.1.0/24")
    assert ip_in(ip_to_bytes("1.0.9.7"), networks) is True
    assert ip_in(ip_to_bytes("27.1.2.3"), networks) is True
    assert ip_in(ip_to_bytes("1.0.2.1"), networks) is False
    assert ip_in(ip_to_bytes("200.0.0.1"), networks) is False


def test_load_ip_masks_missing_file(tmp_path):
    assert load_ip_masks(tmp_path / "none.txt") == []


def test_start_checker_sweeps_and_stops():
    visits = IpVisit(3, 1, 5)
    visits.add("7.7.7.7")
    stop = threading.Event()
    thread = visits.start_checker(stop)
    deadline = time.monotonic() + 5
    while visits.is_ban("7.7.7.7") != 0 and time.monotonic() < deadline:
        time.sleep(0.05)
    stop.set()
    thread.join(timeout=5)
    assert visits.is_ban("7.7.7.7") == 0
    assert not thread.is_alive()