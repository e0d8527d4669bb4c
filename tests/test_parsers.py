from datetime import date, datetime

import pytest

from alinhadores.adapters.parsers import normaliza_arcada, normalize_str, parse_data, parse_int


@pytest.mark.parametrize(
    "val,esperado",
    [
        ("2024-01-08", "2024-01-08"),
        ("2024-01-08T10:00:00", "2024-01-08"),
        ("8/1/2024", "2024-01-08"),
        ("08/01/2024", "2024-01-08"),
        (date(2024, 1, 8), "2024-01-08"),
        (datetime(2024, 1, 8, 9, 30), "2024-01-08"),
        ("31/02/2024", None),
        ("ontem", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_data(val, esperado):
    assert parse_data(val) == esperado


@pytest.mark.parametrize(
    "val,esperado",
    [("3", 3), (" 3 ", 3), ("3.0", 3), ("3,0", 3), (4, 4), ("3.5", None), ("x", None), ("", None), (True, None)],
)
def test_parse_int(val, esperado):
    assert parse_int(val) == esperado


@pytest.mark.parametrize(
    "val,esperado",
    [("Sup", "superior"), ("INFERIOR", "inferior"), ("ambas", "ambos"), (" a ", "ambos"), ("meio", None), (None, None)],
)
def test_normaliza_arcada(val, esperado):
    assert normaliza_arcada(val) == esperado


def test_normalize_str():
    assert normalize_str("  Ana ") == "Ana"
    assert normalize_str("   ") is None
    assert normalize_str(None) is None
