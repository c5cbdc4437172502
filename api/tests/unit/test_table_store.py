from __future__ import annotations

import pytest

from app.infrastructure.storage.table_store import InMemoryTable, InMemoryTableStorage


def test_rows_are_padded_to_header_width() -> None:
    table = InMemoryTable("t")
    table.append_columns(["a"])
    table.append_rows([["1"]])
    table.append_columns(["b", "c"])

    assert table.read_rows() == [["1", "", ""]]


def test_duplicate_column_is_rejected() -> None:
    table = InMemoryTable("t")
    table.append_columns(["a"])
    with pytest.raises(ValueError):
        table.append_columns(["a"])


def test_update_out_of_range_raises() -> None:
    table = InMemoryTable("t")
    table.append_columns(["a"])
    with pytest.raises(IndexError):
        table.update_rows({0: ["x"]})


def test_replace_rows_keeps_header() -> None:
    table = InMemoryTable("t")
    table.append_columns(["a", "b"])
    table.append_rows([["1", "2"], ["3", "4"]])

    table.replace_rows([["5"]])

    assert table.read_header() == ["a", "b"]
    assert table.read_rows() == [["5", ""]]


def test_storage_returns_the_same_table_per_name() -> None:
    storage = InMemoryTableStorage()
    first = storage.get_or_create_table("sessions")
    assert storage.get_or_create_table("sessions") is first
    storage.get_or_create_table("attendees")
    assert storage.table_names() == ["attendees", "sessions"]
