from __future__ import annotations

import sqlite3

import pytest

from circolari_monitor.db import load_store, save_store
from circolari_monitor.models import FingerprintStore, TrackingEntry


@pytest.fixture
def store() -> FingerprintStore:
    s = FingerprintStore()
    s.commit("https://school.example/1.pdf", TrackingEntry(1_666_000_000.123456, b"\x01" * 20, 0))
    s.commit("https://school.example/2.pdf", TrackingEntry(1_666_000_600.5, b"\x02" * 20, 3))
    return s


def test_round_trip(tmp_path, store) -> None:
    path = tmp_path / "state.db"
    save_store(store, path)

    loaded = load_store(path)

    assert loaded == store
    assert loaded.get("https://school.example/2.pdf") == TrackingEntry(1_666_000_600.5, b"\x02" * 20, 3)


def test_missing_file_is_empty_store(tmp_path) -> None:
    assert load_store(tmp_path / "nope.db") == FingerprintStore()


def test_corrupt_file_is_empty_store(tmp_path) -> None:
    path = tmp_path / "state.db"
    path.write_bytes(b"this is not a database at all" * 10)

    assert load_store(path) == FingerprintStore()


def test_older_schema_keeps_readable_sections(tmp_path) -> None:
    path = tmp_path / "state.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE first_seen (identity TEXT PRIMARY KEY, first_seen_at REAL NOT NULL)")
    conn.execute("CREATE TABLE content_digests (identity TEXT PRIMARY KEY, digest BLOB NOT NULL)")
    conn.execute("INSERT INTO first_seen VALUES ('u', 42.0)")
    conn.execute("INSERT INTO content_digests VALUES ('u', ?)", (b"\x09" * 20,))
    conn.commit()
    conn.close()

    loaded = load_store(path)

    assert loaded.first_seen == {"u": 42.0}
    assert loaded.digests == {"u": b"\x09" * 20}
    assert loaded.update_counts == {}
    assert loaded.get("u").update_count == 0


def test_only_first_section_readable(tmp_path) -> None:
    path = tmp_path / "state.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE first_seen (identity TEXT PRIMARY KEY, first_seen_at REAL NOT NULL)")
    conn.execute("INSERT INTO first_seen VALUES ('u', 42.0)")
    conn.commit()
    conn.close()

    loaded = load_store(path)

    assert "u" in loaded
    # announced but without a digest: never a verification candidate
    assert loaded.get("u") is None


def test_save_replaces_previous_snapshot(tmp_path, store) -> None:
    path = tmp_path / "state.db"
    save_store(FingerprintStore(), path)
    save_store(store, path)

    assert load_store(path) == store
    assert not (tmp_path / "state.db.tmp").exists()


def test_failed_save_keeps_previous_snapshot(tmp_path, store) -> None:
    path = tmp_path / "state.db"
    save_store(store, path)

    broken = FingerprintStore(first_seen={"x": 1.0}, digests={"x": "not bytes"})
    with pytest.raises(TypeError):
        save_store(broken, path)

    assert load_store(path) == store
    assert not (tmp_path / "state.db.tmp").exists()


def test_save_heals_corrupt_file(tmp_path, store) -> None:
    path = tmp_path / "state.db"
    path.write_bytes(b"garbage" * 100)

    save_store(store, path)

    assert load_store(path) == store
