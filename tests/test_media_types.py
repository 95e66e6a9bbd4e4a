from memoria.services.media_types import MediaKind, build_ext_table, classify


def test_classify_known_extensions():
    assert classify(".jpg") == MediaKind.IMAGE
    assert classify(".JPEG") == MediaKind.IMAGE
    assert classify("png") == MediaKind.IMAGE
    assert classify(".mov") == MediaKind.VIDEO
    assert classify(".MP4") == MediaKind.VIDEO
    assert classify(".flac") == MediaKind.AUDIO
    assert classify(".m4a") == MediaKind.AUDIO


def test_classify_unknown():
    assert classify(".txt") is None
    assert classify("") is None
    assert classify(".") is None


def test_custom_table_is_normalized():
    table = build_ext_table(["RAW", ".Dng"], ["mts"], [])
    assert table[MediaKind.IMAGE] == {".raw", ".dng"}
    assert classify(".dng", table) == MediaKind.IMAGE
    assert classify(".MTS", table) == MediaKind.VIDEO
    # defaults do not leak into a custom table
    assert classify(".jpg", table) is None
    assert classify(".mp3", table) is None
