"""Tests for decoding JSON and CSV ticket exports."""

import json

import pytest


def test_load_json_array(tmp_path, sample_rows):
    """Test loading a JSON array file."""
    from ticket_insights.importer import load_raw_records

    path = tmp_path / "tickets.json"
    path.write_text(json.dumps(sample_rows, ensure_ascii=False), encoding="utf-8")

    rows = load_raw_records(path)
    assert len(rows) == 3
    assert rows[0]["Empresa"] == "ACME"


def test_json_single_object_becomes_list():
    """Test that a lone object is treated as a one-row batch."""
    from ticket_insights.importer import parse_json_records

    assert parse_json_records('{"#": 1, "Status": "Aberto"}') == [{"#": 1, "Status": "Aberto"}]


@pytest.mark.parametrize("text", ["", "   ", "[", "[]", "42", '"text"'])
def test_json_malformed_batch(text):
    """Test that malformed batches raise ImportFailure."""
    from ticket_insights.errors import ImportFailure
    from ticket_insights.importer import parse_json_records

    with pytest.raises(ImportFailure):
        parse_json_records(text, "inline")


def test_csv_semicolon_with_bom(tmp_path):
    """Test a semicolon-separated export with a UTF-8 BOM."""
    from ticket_insights.importer import load_raw_records

    path = tmp_path / "tickets.csv"
    path.write_text(
        "\ufeff#;Status;Empresa;Data de requisição\n"
        "1;Aberto;ACME;05-03-2024 10:00:00\n"
        "2;Fechado;Beta;06-03-2024 11:30:00\n"
        ";;;\n",
        encoding="utf-8",
    )

    rows = load_raw_records(path)
    assert len(rows) == 2
    assert rows[0]["#"] == "1"
    assert rows[1]["Empresa"] == "Beta"
    assert rows[1]["Data de requisição"] == "06-03-2024 11:30:00"


def test_csv_comma_separated():
    """Test a plain comma-separated export."""
    from ticket_insights.importer import parse_csv_records

    rows = parse_csv_records("id,status,company\n7,Open,A\n8,Closed,B\n")
    assert [r["company"] for r in rows] == ["A", "B"]


def test_csv_empty_and_header_only():
    """Test that empty CSV input raises ImportFailure."""
    from ticket_insights.errors import ImportFailure
    from ticket_insights.importer import parse_csv_records

    with pytest.raises(ImportFailure):
        parse_csv_records("")
    with pytest.raises(ImportFailure):
        parse_csv_records("id,status,company\n")


def test_unsupported_and_missing_files(tmp_path):
    """Test file-level failures."""
    from ticket_insights.errors import ImportFailure
    from ticket_insights.importer import load_raw_records

    xlsx = tmp_path / "tickets.xlsx"
    xlsx.write_bytes(b"PK")
    with pytest.raises(ImportFailure, match="Unsupported"):
        load_raw_records(xlsx)

    with pytest.raises(ImportFailure) as excinfo:
        load_raw_records(tmp_path / "missing.json")
    assert excinfo.value.source.endswith("missing.json")


def test_csv_cells_stay_text():
    """Test that numeric-looking and blank cells are not converted."""
    from ticket_insights.importer import parse_csv_records

    rows = parse_csv_records("#;Status;Empresa\n007;Aberto;\n8;NA;Beta\n")

    assert rows[0] == {"#": "007", "Status": "Aberto", "Empresa": ""}
    assert rows[1]["Status"] == "NA"


def test_csv_ragged_rows_fail():
    """Test that rows with surplus cells fail the whole batch."""
    from ticket_insights.errors import ImportFailure
    from ticket_insights.importer import parse_csv_records

    with pytest.raises(ImportFailure, match="Invalid CSV"):
        parse_csv_records("id,status\n1,Open\n2,Closed,extra,more\n", "bad.csv")
