import sqlite3

import pytest

from imgtools.downloads import (
    ImageCheckError,
    check_image,
    check_suffix,
    detect_image_extension,
    down_img,
)
from imgtools.models import ImgTask, ModelError, create_schema

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
JPG = b"\xff\xd8\xff\xe0" + b"\x00" * 16
BMP = b"BM" + b"\x00" * 20
WEBP = b"RIFF\x00\x00\x00\x00WEBPVP8 " + b"\x00" * 8


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    create_schema(connection)
    yield connection
    connection.close()


def stored_task(conn, downloads):
    task = ImgTask(id="ABCDEF12", tool_id=1, suffix="png", download_times=downloads)
    task.add(conn)
    return task


def test_check_suffix():
    accepted = ["jpg", "jpeg", "png"]
    assert check_suffix("png", accepted) is True
    assert check_suffix("bmp", accepted) is False


@pytest.mark.parametrize(
    "data,extension",
    [(PNG, "png"), (JPG, "jpg"), (BMP, "bmp"), (WEBP, "webp")],
)
def test_detect_image_extension(data, extension):
    assert detect_image_extension(data) == extension


def test_detect_tiff_and_not_cr2():
    tiff = b"II*\x00" + b"\x00" * 12
    cr2 = b"II*\x00\x10\x00\x00\x00CR" + b"\x00" * 6
    assert detect_image_extension(tiff) == "tif"
    assert detect_image_extension(cr2) == "cr2"


def test_detect_unknown_raises():
    with pytest.raises(ImageCheckError, match="类型识别错误"):
        detect_image_extension(b"hello world, not an image")


def test_check_image_returns_bytes_and_suffix():
    data, suffix = check_image(PNG, len(PNG), 3143680)
    assert data == PNG
    assert suffix == "png"


def test_check_image_too_large():
    with pytest.raises(ImageCheckError, match="文件大小超过限制"):
        check_image(PNG, 3143681, 3143680)


def test_check_image_without_upload():
    assert check_image(None, 0, 3143680) == (b"", "")


def test_check_image_too_short():
    with pytest.raises(ImageCheckError, match="上传的文件错误"):
        check_image(b"\x89PN", 4, 3143680)


def test_down_img_reduces_downloads(conn):
    stored_task(conn, 2)
    task = ImgTask(id="ABCDEF12", tool_id=1)
    down_img(conn, task, True)
    assert task.download_times == 1
    again = ImgTask(id="ABCDEF12", tool_id=1)
    again.find(conn)
    assert again.download_times == 1


def test_down_img_without_reducing(conn):
    stored_task(conn, 2)
    task = ImgTask(id="ABCDEF12", tool_id=1)
    down_img(conn, task, False)
    assert task.download_times == 2
    assert task.suffix == "png"


def test_down_img_exhausted(conn):
    stored_task(conn, 0)
    with pytest.raises(ModelError, match="下载次数已用完"):
        down_img(conn, ImgTask(id="ABCDEF12", tool_id=1), True)


def test_down_img_missing_task(conn):
    with pytest.raises(ModelError, match="未找到该资源"):
        down_img(conn, ImgTask(id="ZZZZZZ99", tool_id=1), True)