"""Tests for CSV and XLSX file parsing."""

import io
from datetime import datetime

import pytest
from openpyxl import Workbook

from tabsync.services.import_service.parsers import (
    get_file_extension,
    parse_csv,
    parse_file,
    parse_xlsx,
)


def _make_xlsx(rows: list[list], extra_sheet: list[list] | None = None) -> bytes:
    """Build an XLSX workbook in memory."""
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    if extra_sheet is not None:
        other = wb.create_sheet("Other")
        for row in extra_sheet:
            other.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


# =============================================================================
# CSV
# =============================================================================


class TestParseCsv:
    """Tests for parse_csv."""

    def test_basic(self) -> None:
        content = b"Project Name,Client,Value\nTower,Acme,\"$1,200.00\"\n"
        headers, rows = parse_csv(content)

        assert headers == ["Project Name", "Client", "Value"]
        assert rows == [{"Project Name": "Tower", "Client": "Acme", "Value": "$1,200.00"}]

    def test_utf8_bom_is_dropped(self) -> None:
        content = "\ufeffCliente,Estado\nAcme,Ganado\n".encode("utf-8")
        headers, rows = parse_csv(content)
        assert headers == ["Cliente", "Estado"]
        assert rows[0]["Cliente"] == "Acme"

    def test_latin1_fallback(self) -> None:
        content = "Dirección,Ciudad\nCalle 8,Miami\n".encode("latin-1")
        headers, rows = parse_csv(content)
        assert headers == ["Dirección", "Ciudad"]
        assert rows[0]["Dirección"] == "Calle 8"

    def test_blank_rows_are_skipped(self) -> None:
        content = b"Name,Email\nAna,a@x.com\n,\n\nBo,b@x.com\n"
        _, rows = parse_csv(content)
        assert [row["Name"] for row in rows] == ["Ana", "Bo"]

    def test_short_and_long_rows(self) -> None:
        content = b"A,B\n1\n2,3,4\n"
        _, rows = parse_csv(content)
        assert rows == [{"A": "1", "B": ""}, {"A": "2", "B": "3"}]

    def test_max_rows(self) -> None:
        content = b"N\n" + b"".join(f"{i}\n".encode() for i in range(10))
        _, rows = parse_csv(content, max_rows=3)
        assert [row["N"] for row in rows] == ["0", "1", "2"]

    def test_empty_file(self) -> None:
        with pytest.raises(ValueError, match="no headers"):
            parse_csv(b"")


# =============================================================================
# XLSX
# =============================================================================


class TestParseXlsx:
    """Tests for parse_xlsx."""

    def test_native_types_are_kept(self) -> None:
        content = _make_xlsx(
            [
                ["Project Name", "Value", "Start Date"],
                ["  Tower  ", 1200.5, datetime(2024, 3, 15)],
            ]
        )
        headers, rows = parse_xlsx(content)

        assert headers == ["Project Name", "Value", "Start Date"]
        assert rows[0]["Project Name"] == "Tower"
        assert rows[0]["Value"] == 1200.5
        assert rows[0]["Start Date"] == datetime(2024, 3, 15)

    def test_first_sheet_only(self) -> None:
        content = _make_xlsx([["Name"], ["Ana"]], extra_sheet=[["Name"], ["Other"]])
        _, rows = parse_xlsx(content)
        assert rows == [{"Name": "Ana"}]

    def test_blank_header_columns_are_ignored(self) -> None:
        content = _make_xlsx([["Name", None, "Email"], ["Ana", "x", "a@x.com"]])
        headers, rows = parse_xlsx(content)
        assert headers == ["Name", "Email"]
        assert rows == [{"Name": "Ana", "Email": "a@x.com"}]

    def test_max_rows(self) -> None:
        content = _make_xlsx([["N"]] + [[i] for i in range(1, 11)])
        _, rows = parse_xlsx(content, max_rows=4)
        assert len(rows) == 4

    def test_not_a_workbook(self) -> None:
        with pytest.raises(ValueError, match="could not be opened"):
            parse_xlsx(b"not a zip file")


# =============================================================================
# Dispatch
# =============================================================================


def test_parse_file_dispatches_on_extension() -> None:
    headers, _ = parse_file("leads.CSV", b"Name\nAna\n")
    assert headers == ["Name"]
    headers, _ = parse_file("leads.xlsx", _make_xlsx([["Name"], ["Ana"]]))
    assert headers == ["Name"]


def test_parse_file_rejects_unknown_extension() -> None:
    with pytest.raises(ValueError, match="Unsupported file type"):
        parse_file("leads.pdf", b"")


def test_get_file_extension() -> None:
    assert get_file_extension("a.b.XLSX") == "xlsx"
    assert get_file_extension("noext") == ""
    assert get_file_extension(None) == ""
