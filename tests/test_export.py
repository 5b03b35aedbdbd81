from pathlib import Path

from taller_client.export import export_rows_csv, rows_to_csv


def test_rows_to_csv_uses_first_row_header() -> None:
    rows = [
        {"id": 1, "nombre": "Acme, SL", "email": None},
        {"id": 2, "nombre": "Beta", "email": "b@x.es", "extra": "ignored"},
    ]

    assert rows_to_csv(rows) == 'id,nombre,email\n1,"Acme, SL",\n2,Beta,b@x.es\n'


def test_export_writes_file(tmp_path: Path) -> None:
    target = tmp_path / "out" / "clientes.csv"

    assert export_rows_csv([{"id": 1}], target)
    assert target.read_text(encoding="utf-8") == "id\n1\n"
    assert not export_rows_csv([], tmp_path / "empty.csv")
    assert not (tmp_path / "empty.csv").exists()
