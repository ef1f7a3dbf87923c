"""Tests for the shard store and shard collector."""

from pathlib import Path

import pytest

from conftest import read_csv, write_csv
from harvester.exceptions import ShardCollectionError, ShardWriteError
from harvester.shards import ShardCollector, ShardStore, link_key, shard_link_key


def test_write_shard_uses_unique_names(workdir):
    store = ShardStore(workdir / "shards")

    first = store.write_shard("https://example.com/a", [{"Url": "a", "Title": "A"}])
    second = store.write_shard("https://example.com/a", [{"Url": "a", "Title": "A"}])

    assert first != second
    assert shard_link_key(first) == shard_link_key(second) == link_key("https://example.com/a")
    assert store.count() == 2
    assert read_csv(first) == (["Url", "Title"], [{"Url": "a", "Title": "A"}])


def test_write_shard_without_records_writes_nothing(workdir):
    store = ShardStore(workdir / "shards")
    assert store.write_shard("https://example.com/a", []) is None
    assert not store.exists()


def test_write_shard_header_is_union_of_record_keys(workdir):
    store = ShardStore(workdir / "shards")
    path = store.write_shard("https://example.com/a", [{"x": "1"}, {"x": "2", "y": "3"}])

    fieldnames, rows = read_csv(path)
    assert fieldnames == ["x", "y"]
    assert rows == [{"x": "1", "y": ""}, {"x": "2", "y": "3"}]


def test_unwritable_store_is_fatal(workdir):
    blocker = workdir / "not_a_dir"
    blocker.write_text("")
    store = ShardStore(blocker / "shards")

    with pytest.raises(ShardWriteError):
        store.write_shard("https://example.com/a", [{"Url": "a"}])


def test_schema_projection(workdir):
    shard_dir = workdir / "shards"
    write_csv(shard_dir / "a.csv", ["x", "y"], [{"x": "a1", "y": "a2"}])
    write_csv(shard_dir / "b.csv", ["x", "z"], [{"x": "b1", "z": "b3"}])
    output = workdir / "output.csv"

    rows_written = ShardCollector(ShardStore(shard_dir), output).collect()

    assert rows_written == 2
    fieldnames, rows = read_csv(output)
    assert fieldnames == ["x", "y"]
    assert rows == [{"x": "a1", "y": "a2"}, {"x": "b1", "y": ""}]
    assert not shard_dir.exists()


def test_collect_three_shards_is_their_union(workdir):
    shard_dir = workdir / "shards"
    write_csv(shard_dir / "1.csv", ["Url", "Title"], [{"Url": "u1", "Title": "t1"}])
    write_csv(shard_dir / "2.csv", ["Url", "Title"], [{"Url": "u2", "Title": "t2"}, {"Url": "u2", "Title": "t2b"}])
    write_csv(shard_dir / "3.csv", ["Url", "Title"], [{"Url": "u3", "Title": "t3"}])
    output = workdir / "output.csv"

    ShardCollector(ShardStore(shard_dir), output).collect()

    _, rows = read_csv(output)
    assert sorted((r["Url"], r["Title"]) for r in rows) == [
        ("u1", "t1"), ("u2", "t2"), ("u2", "t2b"), ("u3", "t3"),
    ]
    assert not shard_dir.exists()


def test_collect_without_shards_is_noop(workdir):
    output = workdir / "output.csv"
    output.write_text("Url,Title\nu1,t1\n", encoding="utf-8")
    collector = ShardCollector(ShardStore(workdir / "missing"), output)

    assert collector.collect() == 0
    assert collector.collect() == 0
    assert output.read_text(encoding="utf-8") == "Url,Title\nu1,t1\n"


def test_collect_twice_keeps_first_merge(workdir):
    shard_dir = workdir / "shards"
    write_csv(shard_dir / "1.csv", ["Url"], [{"Url": "u1"}])
    output = workdir / "output.csv"
    collector = ShardCollector(ShardStore(shard_dir), output)

    collector.collect()
    merged = output.read_text(encoding="utf-8")
    collector.collect()

    assert output.read_text(encoding="utf-8") == merged


def test_empty_shard_dir_is_removed(workdir):
    shard_dir = workdir / "shards"
    shard_dir.mkdir()

    assert ShardCollector(ShardStore(shard_dir), workdir / "output.csv").collect() == 0
    assert not shard_dir.exists()
    assert not (workdir / "output.csv").exists()


def test_identical_records_from_different_links_are_all_kept(workdir):
    store = ShardStore(workdir / "shards")
    store.write_shard("https://example.com/a", [{"Status": "ok"}])
    store.write_shard("https://example.com/b", [{"Status": "ok"}])
    output = workdir / "output.csv"

    assert ShardCollector(store, output).collect() == 2
    assert read_csv(output)[1] == [{"Status": "ok"}, {"Status": "ok"}]


def test_identical_records_from_one_page_are_all_kept(workdir):
    store = ShardStore(workdir / "shards")
    store.write_shard("https://example.com/a", [{"Status": "ok"}, {"Status": "ok"}])

    assert ShardCollector(store, workdir / "output.csv").collect() == 2


def test_rows_made_equal_by_projection_are_all_kept(workdir):
    shard_dir = workdir / "shards"
    write_csv(shard_dir / "a.csv", ["x", "y"], [{"x": "1", "y": ""}])
    write_csv(shard_dir / "b.csv", ["x", "z"], [{"x": "1", "z": "5"}])
    output = workdir / "output.csv"

    assert ShardCollector(ShardStore(shard_dir), output).collect() == 2
    assert read_csv(output) == (["x", "y"], [{"x": "1", "y": ""}, {"x": "1", "y": ""}])


def test_link_fetched_twice_is_merged_once(workdir, capsys):
    store = ShardStore(workdir / "shards")
    store.write_shard("https://example.com/a", [{"Url": "a", "Title": "first"}])
    store.write_shard("https://example.com/a", [{"Url": "a", "Title": "second"}])
    store.write_shard("https://example.com/b", [{"Url": "b", "Title": "b"}])
    output = workdir / "output.csv"

    assert ShardCollector(store, output).collect() == 2

    _, rows = read_csv(output)
    assert sorted(r["Url"] for r in rows) == ["a", "b"]
    assert "Skipped 1 shards" in capsys.readouterr().out
    assert not store.exists()


def test_shard_link_key():
    key = link_key("https://example.com/a")

    assert len(key) == 16
    assert key != link_key("https://example.com/b")
    assert shard_link_key(Path(f"{key}-0123abcd.csv")) == key
    assert shard_link_key(Path("previous-0123abcd.csv")) is None
    assert shard_link_key(Path("a.csv")) is None
    assert shard_link_key(Path("my-shard.csv")) is None


def test_unreadable_shard_aborts_and_keeps_store(workdir):
    shard_dir = workdir / "shards"
    write_csv(shard_dir / "1.csv", ["Url"], [{"Url": "u1"}])
    (shard_dir / "2.csv").write_bytes(b"\xff\xfe\xfa not utf-8")
    output = workdir / "output.csv"
    output.write_text("Url\nold\n", encoding="utf-8")

    with pytest.raises(ShardCollectionError) as excinfo:
        ShardCollector(ShardStore(shard_dir), output).collect()

    assert "2.csv" in str(excinfo.value)
    assert (shard_dir / "1.csv").exists()
    assert (shard_dir / "2.csv").exists()
    assert output.read_text(encoding="utf-8") == "Url\nold\n"
    assert [p.name for p in workdir.iterdir() if p.name.endswith(".tmp")] == []


def test_adopted_output_is_merged_first(workdir):
    shard_dir = workdir / "shards"
    store = ShardStore(shard_dir)
    write_csv(shard_dir / "0000.csv", ["Url"], [{"Url": "new"}])
    previous = write_csv(workdir / "output.csv", ["Url", "Title"], [{"Url": "old", "Title": "t"}])

    adopted = store.adopt(previous)

    assert not previous.exists()
    assert store.list_shards()[0] == adopted

    ShardCollector(store, workdir / "output.csv").collect()
    fieldnames, rows = read_csv(workdir / "output.csv")
    assert fieldnames == ["Url", "Title"]
    assert rows == [{"Url": "old", "Title": "t"}, {"Url": "new", "Title": ""}]


def test_temporary_files_are_not_shards(workdir):
    shard_dir = workdir / "shards"
    write_csv(shard_dir / "1.csv", ["Url"], [{"Url": "u1"}])
    (shard_dir / ".abc.tmp").write_text("Url\nhalf")

    assert [p.name for p in ShardStore(shard_dir).list_shards()] == ["1.csv"]
