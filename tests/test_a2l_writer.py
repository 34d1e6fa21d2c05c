"""
Tests for the dataset text writer.

Run with: pytest tests/test_a2l_writer.py -v
"""

import pytest

from api.schemas import EntityKind
from api.store.reader import read_dataset
from api.store.writer import format_hex, format_number, quote, write_dataset


class TestFormatting:

    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, "0"),
            (8000.0, "8000"),
            (-40.0, "-40"),
            (0.5, "0.5"),
            (float("inf"), "inf"),
        ],
    )
    def test_format_number(self, value, expected):
        assert format_number(value) == expected

    def test_format_hex_is_uppercase_with_prefix(self):
        assert format_hex(0x1000) == "0x1000"
        assert format_hex(0xBEEF) == "0xBEEF"

    def test_quote_escapes(self):
        assert quote('say "hi"') == '"say \\"hi\\""'


class TestWriteDataset:

    def test_reread_preserves_entities(self, sample_a2l):
        original = read_dataset(sample_a2l).dataset
        reread = read_dataset(write_dataset(original)).dataset

        assert reread.project_name == original.project_name
        assert reread.header_comment == original.header_comment
        assert reread.asap2_version == (1, 71)
        for kind in (EntityKind.MEASUREMENT, EntityKind.CHARACTERISTIC, EntityKind.AXIS_PTS):
            assert reread.modules[0].entities_of(kind) == original.modules[0].entities_of(kind)

    def test_unknown_content_is_kept_verbatim(self, sample_a2l):
        text = write_dataset(read_dataset(sample_a2l).dataset)

        assert '/begin MOD_PAR ""\n      CPU_TYPE "demo"\n    /end MOD_PAR' in text
        assert 'FORMAT "%6.1"' in text
        assert "/begin AXIS_DESCR STD_AXIS EngineSpeed" in text
        assert 'IDENTICAL "%6.1" "rpm"' in text
        assert 'VERSION "1.0"' in text

    def test_comments_are_not_written(self, sample_a2l):
        text = write_dataset(read_dataset(sample_a2l).dataset)
        assert "Sample calibration dataset" not in text

    def test_edited_fields_are_written(self, edit_a2l):
        dataset = read_dataset(edit_a2l).dataset
        speed = dataset.modules[0].find(EntityKind.MEASUREMENT, "EngineSpeed")
        speed.upper_limit = 12000.0
        speed.ecu_address = 0xABC

        text = write_dataset(dataset)

        assert "UWORD NO_COMPU_METHOD 1 0 0 12000" in text
        assert "ECU_ADDRESS 0xABC" in text

    def test_no_header_block_without_comment(self, edit_a2l):
        text = write_dataset(read_dataset(edit_a2l).dataset)
        assert "HEADER" not in text
