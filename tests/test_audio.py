from audio import merge, merge_all


def test_merge_is_plain_concatenation():
    a = b"\xff\xfb\x90\x00first"
    b = b"\xff\xfb\x90\x00second"

    merged = merge(a, b)

    assert merged == a + b
    assert len(merged) == len(a) + len(b)


def test_merge_is_order_sensitive():
    assert merge(b"ab", b"cd") != merge(b"cd", b"ab")


def test_merge_is_associative():
    a, b, c = b"ID3\x03", b"\xff\xfb", b"tail"
    assert merge(merge(a, b), c) == merge(a, merge(b, c)) == a + b + c


def test_merge_keeps_duplicate_headers():
    header = b"ID3\x04\x00"
    assert merge(header + b"x", header + b"y") == header + b"x" + header + b"y"


def test_merge_all_folds_in_order():
    assert merge_all([b"1", b"2", b"3"]) == b"123"
    assert merge_all(iter([b"z", b"a"])) == b"za"


def test_merge_all_empty_is_empty_bytes():
    assert merge_all([]) == b""
