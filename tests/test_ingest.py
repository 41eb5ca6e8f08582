"""Tests for CSV ingestion and the bootstrap rule."""

import pytest

from rollcall.ingest import IngestError, bootstrap_snapshot, parse_csv, read_csv


class TestParseCsv:

    def test_header_defines_fields(self):
        records = parse_csv("Name,T-Shirt Size\nAlice,M\nBob,L\n")
        assert records == [
            {"Name": "Alice", "T-Shirt Size": "M"},
            {"Name": "Bob", "T-Shirt Size": "L"},
        ]

    def test_blank_rows_are_skipped(self):
        # trailing newline and empty rows must not produce nameless people
        records = parse_csv("Name,Size\nAlice,M\n\n,\n")
        assert [r["Name"] for r in records] == ["Alice"]

    def test_short_rows_are_padded_and_extra_cells_dropped(self):
        records = parse_csv("Name,Size,City\nAlice\nBob,L,Salem,extra\n")
        assert records[0] == {"Name": "Alice", "Size": "", "City": ""}
        assert records[1] == {"Name": "Bob", "Size": "L", "City": "Salem"}

    def test_byte_order_mark_is_stripped(self):
        records = parse_csv("\ufeffName\nAlice\n")
        assert records == [{"Name": "Alice"}]

    def test_numeric_coercion_is_opt_in(self):
        text = "Name,Age,Score\nAlice,16,9.5\n"
        assert parse_csv(text)[0]["Age"] == "16"

        coerced = parse_csv(text, coerce_numbers=True)[0]
        assert coerced["Age"] == 16
        assert coerced["Score"] == 9.5
        assert coerced["Name"] == "Alice"

    def test_empty_text_raises(self):
        with pytest.raises(IngestError):
            parse_csv("")


class TestReadCsv:

    def test_missing_file_raises_ingest_error(self, tmp_path):
        with pytest.raises(IngestError):
            read_csv(tmp_path / "nope.csv")

    def test_reads_sample(self, participants_csv):
        records = read_csv(participants_csv)
        assert len(records) == 3
        assert records[0]["City/State"] == "Portland, OR"


class TestBootstrap:

    def test_flags_are_added(self, participants_csv, staff_csv):
        snap = bootstrap_snapshot(participants_csv, staff_csv)

        assert all(p["checkedIn"] is False for p in snap.participants)
        assert all(p["shirtProvided"] is False for p in snap.participants)

        staff = {s["Name"]: s for s in snap.staff}
        assert staff["Dana Lee"]["shirtProvided"] is False
        # staff who need no shirt start as provided
        assert staff["Evan Park"]["shirtProvided"] is True
        assert all(s["checkedIn"] is False for s in snap.staff)

    def test_bootstrap_is_idempotent(self, participants_csv, staff_csv):
        first = bootstrap_snapshot(participants_csv, staff_csv)
        second = bootstrap_snapshot(participants_csv, staff_csv)

        assert first.participants == second.participants
        assert first.staff == second.staff

    def test_missing_staff_file_raises(self, participants_csv, tmp_path):
        with pytest.raises(IngestError):
            bootstrap_snapshot(participants_csv, tmp_path / "missing.csv")
