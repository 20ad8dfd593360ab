from imgtools.hashing import base64_md5, md5_hex


def test_md5_of_empty_string():
    assert md5_hex("") == "d41d8cd98f00b204e9800998ecf8427e"


def test_md5_of_abc():
    assert md5_hex("abc") == "900150983cd24fb0d6963f7d28e17f72"


def test_base64_md5_hashes_encoded_text():
    assert base64_md5("abc") == md5_hex("YWJj")


def test_base64_md5_of_empty_string_matches_plain():
    assert base64_md5("") == md5_hex("")


def test_digest_shape():
    digest = md5_hex("图片工具")
    assert len(digest) == 32
    assert all(ch in "0123456789abcdef" for ch in digest)