"""Tests for mergejoin/lib/output.py - row assembly and writers."""

import io

from mergejoin.lib.config import JoinConfig, parse_output_fields
from mergejoin.lib.cursor import ListCursor
from mergejoin.lib.engine import JoinedRow, RowKind
from mergejoin.lib.output import DelimitedWriter, FrameCollector, OutputAssembler
from mergejoin.lib.records import Record, Side


def _left(*fields):
    return Record.of(fields, Side.LEFT, 0)


def _right(*fields):
    return Record.of(fields, Side.RIGHT, 0)


class TestOutputAssembler:
    """Tests for OutputAssembler."""

    def test_match_concatenates_both_sides(self):
        assembler = OutputAssembler(JoinConfig(left_width=2, right_width=2))
        row = JoinedRow(RowKind.MATCH, _left("1", "a"), _right("1", "x"))
        assert assembler.assemble(row) == ["1", "a", "1", "x"]

    def test_unmatched_side_uses_placeholder(self):
        config = JoinConfig(left_width=2, right_width=3, right_placeholder="NULL")
        assembler = OutputAssembler(config)
        row = JoinedRow.unmatched(_left("1", "a"))
        assert assembler.assemble(row) == ["1", "a", "NULL", "NULL", "NULL"]

    def test_short_record_padded(self):
        assembler = OutputAssembler(JoinConfig(left_width=3, right_width=1, left_placeholder="?"))
        row = JoinedRow(RowKind.MATCH, _left("1"), _right("1"))
        assert assembler.assemble(row) == ["1", "?", "?", "1"]

    def test_long_record_not_truncated(self):
        assembler = OutputAssembler(JoinConfig(left_width=1, right_width=1))
        row = JoinedRow(RowKind.MATCH, _left("1", "extra"), _right("1"))
        assert assembler.assemble(row) == ["1", "extra", "1"]

    def test_empty_field_kept(self):
        assembler = OutputAssembler(JoinConfig(left_width=2, right_width=0, left_placeholder="?"))
        row = JoinedRow.unmatched(_left("1", ""))
        assert assembler.assemble(row) == ["1", ""]

    def test_width_learned_from_first_row(self):
        assembler = OutputAssembler(JoinConfig())
        assembler.assemble(JoinedRow(RowKind.MATCH, _left("1", "a"), _right("1", "x", "y")))
        assert assembler.width(Side.LEFT) == 2
        assert assembler.width(Side.RIGHT) == 3

    def test_learn_widths_from_cursors(self):
        assembler = OutputAssembler(JoinConfig())
        left = ListCursor([["1", "a", "b"]], Side.LEFT)
        right = ListCursor([], Side.RIGHT)
        assembler.learn_widths(left, right)
        assert assembler.width(Side.LEFT) == 3
        assert assembler.width(Side.RIGHT) == 0
        # peeking does not consume
        assert left.peek().fields == ("1", "a", "b")

    def test_configured_width_wins(self):
        assembler = OutputAssembler(JoinConfig(left_width=1))
        assembler.learn_widths(ListCursor([["1", "a"]], Side.LEFT), ListCursor([], Side.RIGHT))
        assert assembler.width(Side.LEFT) == 1


class TestOutputFields:
    """Tests for explicit output field lists."""

    def test_selected_fields(self):
        config = JoinConfig(output_fields=parse_output_fields("0,1.2,2.2"))
        assembler = OutputAssembler(config)
        row = JoinedRow(RowKind.MATCH, _left("1", "a"), _right("1", "x"))
        assert assembler.assemble(row) == ["1", "a", "x"]

    def test_key_taken_from_present_side(self):
        config = JoinConfig(
            output_fields=parse_output_fields("0,1.2,2.2"),
            left_placeholder="-",
            right_placeholder="-",
        )
        assembler = OutputAssembler(config)
        left_only = JoinedRow.unmatched(_left("1", "a"))
        right_only = JoinedRow.unmatched(_right("3", "x"))
        assert assembler.assemble(left_only) == ["1", "a", "-"]
        assert assembler.assemble(right_only) == ["3", "-", "x"]

    def test_multi_field_key(self):
        config = JoinConfig(
            left_keys=(0, 2), right_keys=(0, 1), output_fields=parse_output_fields("0")
        )
        assembler = OutputAssembler(config)
        row = JoinedRow.unmatched(_right("a", "b", "c"))
        assert assembler.assemble(row) == ["a", "b"]

    def test_field_past_end_uses_placeholder(self):
        config = JoinConfig(output_fields=parse_output_fields("1.5"), left_placeholder="?")
        assembler = OutputAssembler(config)
        assert assembler.assemble(JoinedRow.unmatched(_left("1"))) == ["?"]


class TestHeaderAndColumns:
    """Tests for header rows and DataFrame column names."""

    def test_header_treated_as_match(self):
        assembler = OutputAssembler(JoinConfig(left_width=2, right_width=2))
        header = assembler.header(_left("id", "name"), _right("id", "amount"))
        assert header == ["id", "name", "id", "amount"]

    def test_column_names_suffix_clashes(self):
        assembler = OutputAssembler(JoinConfig())
        names = assembler.column_names(["id", "name"], ["id", "amount"])
        assert names == ["id", "name", "id_right", "amount"]

    def test_column_names_for_output_fields(self):
        config = JoinConfig(output_fields=parse_output_fields("0,2.2"))
        names = OutputAssembler(config).column_names(["id", "name"], ["id", "amount"])
        assert names == ["id", "amount"]


class TestDelimitedWriter:
    """Tests for DelimitedWriter."""

    def test_text_stream(self):
        stream = io.StringIO()
        writer = DelimitedWriter(stream, "\t")
        writer.write_row(["1", "", "x"])
        assert stream.getvalue() == "1\t\tx\n"
        assert writer.rows_written == 1

    def test_binary_stream(self):
        stream = io.BytesIO()
        writer = DelimitedWriter(stream, ",")
        writer.write_row(["1", "\udcff"])
        writer.flush()
        assert stream.getvalue() == b"1,\xff\n"


class TestFrameCollector:
    """Tests for FrameCollector."""

    def test_to_frame_with_columns(self):
        collector = FrameCollector(["a", "b"])
        collector.write_row(["1", "2"])
        df = collector.to_frame()
        assert list(df.columns) == ["a", "b"]
        assert df.values.tolist() == [["1", "2"]]
        assert collector.rows_written == 1

    def test_to_frame_without_columns(self):
        collector = FrameCollector()
        collector.write_row(["1"])
        assert collector.to_frame().shape == (1, 1)
