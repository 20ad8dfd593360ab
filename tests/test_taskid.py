import pytest

from imgtools.taskid import check_user_id, create_user_hash_code, new_task_id


def test_zero_seed_gives_all_zero_body():
    assert new_task_id(0) == "000000CC"


def test_hash_code_of_zeros():
    assert create_user_hash_code("000000") == "CC"


@pytest.mark.parametrize("seed", [1, 42, 987654321, 7188392017262592005, 123456789012345678])
def test_generated_ids_validate(seed):
    task_id = new_task_id(seed)
    assert len(task_id) == 8
    assert all(ch.isdigit() or ("A" <= ch <= "Z") for ch in task_id)
    assert check_user_id(task_id)


def test_generated_without_seed_validates():
    task_id = new_task_id()
    assert check_user_id(task_id)


def test_same_seed_same_id():
    first = new_task_id(555)
    second = new_task_id(555)
    assert len(first) == 8
    assert check_user_id(first)
    assert second == first


def test_tampered_check_code_rejected():
    task_id = new_task_id(42)
    replacement = "0" if task_id[-1] != "0" else "1"
    assert not check_user_id(task_id[:-1] + replacement)


def test_wrong_length_rejected():
    task_id = new_task_id(42)
    assert not check_user_id(task_id[:7])
    assert not check_user_id(task_id + "0")


def test_lowercase_rejected():
    assert not check_user_id("abcdefgh")


def test_short_user_id_raises():
    with pytest.raises(ValueError):
        create_user_hash_code("ABC")


def test_negative_seed_raises():
    with pytest.raises(ValueError):
        new_task_id(-1)