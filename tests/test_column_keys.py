from datetime import date

from holdings_recon.domain import column_keys
from holdings_recon.domain.models import FIRST, SECOND, SnapshotColumnKey


def test_encode_carries_date_file_and_position():
    key = column_keys.make_key(date(2025, 12, 3), 4, SECOND)

    assert column_keys.encode(key) == "03-12-2025@@4-2"
    assert column_keys.decode("03-12-2025@@4-2") == key


def test_parts_extracted_from_text_alone():
    text = "15-01-2024@@12-1"

    assert column_keys.base_date_of(text) == date(2024, 1, 15)
    assert column_keys.file_index_of(text) == 12
    assert column_keys.position_of(text) == FIRST


def test_same_date_from_two_files_stays_distinct():
    a = column_keys.make_key(date(2025, 12, 3), 0, SECOND)
    b = column_keys.make_key(date(2025, 12, 3), 1, FIRST)

    assert a != b
    assert column_keys.encode(a) != column_keys.encode(b)
    assert column_keys.base_date_of(column_keys.encode(a)) == column_keys.base_date_of(column_keys.encode(b))


def test_malformed_keys_decode_without_provenance():
    for text in ("03-12-2025", "03-12-2025@@", "03-12-2025@@x-y", "03-12-2025@@1-3", "03-12-2025@@1"):
        key = column_keys.decode(text)
        assert key.base_date == date(2025, 12, 3)
        assert key.file_index is None
        assert key.position is None
        assert not key.is_grouped


def test_garbage_decodes_to_empty_key():
    assert column_keys.decode("") == SnapshotColumnKey(base_date=None)
    assert column_keys.decode(None) == SnapshotColumnKey(base_date=None)
    assert column_keys.decode("31-02-2025@@0-1").base_date is None


def test_ungrouped_key_encodes_as_bare_date():
    assert column_keys.encode(SnapshotColumnKey(base_date=date(2025, 1, 2))) == "02-01-2025"


def test_parse_date_text_formats():
    expected = date(2025, 3, 7)
    for text in ("07-03-2025", "7-3-2025", "2025-03-07", "07/03/2025", "07.03.2025", "07-Mar-2025", "07-MAR-2025"):
        assert column_keys.parse_date_text(text) == expected
    assert column_keys.parse_date_text("Mar 7") is None
    assert column_keys.parse_date_text("07-Xyz-2025") is None


def test_excel_serial_round_trip_anchor():
    assert column_keys.to_excel_serial(date(1900, 3, 1)) == 61
    assert column_keys.to_excel_serial(date(2025, 1, 1)) == 45658
    assert column_keys.from_excel_serial(45658) == date(2025, 1, 1)


def test_make_key_rejects_unknown_position():
    try:
        column_keys.make_key(date(2025, 1, 1), 0, 3)
    except ValueError:
        pass
    else:
        raise AssertionError("position 3 accepted")
