"""Tests for configuration validation."""

from pathlib import Path

import pytest

from harvester.config import PipelineConfig, RetryConfig, default_shard_dir
from harvester.exceptions import ConfigurationError


def test_defaults():
    config = PipelineConfig(output_path="out/events.csv")

    assert config.shard_dir == Path("out/events.csv.shards")
    assert config.workers >= 1
    assert isinstance(config.output_path, Path)


def test_default_shard_dir():
    assert default_shard_dir(Path("a/b.csv")) == Path("a/b.csv.shards")


@pytest.mark.parametrize("overrides, message", [
    ({"retry": RetryConfig(max_retries=-1)}, "retry count"),
    ({"delay": -1}, "delay"),
    ({"timeout": 0}, "timeout"),
])
def test_invalid_values(make_config, write_links, overrides, message):
    write_links(["https://example.com/a"])

    with pytest.raises(ConfigurationError, match=message):
        make_config(**overrides).validate()


def test_negative_workers(make_config, write_links):
    write_links(["https://example.com/a"])
    config = make_config()
    config.workers = -2

    with pytest.raises(ConfigurationError, match="worker count"):
        config.validate()


def test_input_required_unless_collect_only(make_config):
    with pytest.raises(ConfigurationError, match="input file is required"):
        make_config(input_path=None).validate()

    make_config(input_path=None, collect_only=True).validate()


def test_output_may_not_overwrite_input(make_config, write_links, workdir):
    write_links(["https://example.com/a"])

    with pytest.raises(ConfigurationError, match="overwrite the input"):
        make_config(output_path=workdir / "links.txt").validate()


def test_output_may_not_be_a_directory(make_config, write_links, workdir):
    write_links(["https://example.com/a"])
    (workdir / "out").mkdir()

    with pytest.raises(ConfigurationError, match="is a directory"):
        make_config(output_path=workdir / "out").validate()


def test_shard_dir_must_be_a_directory(make_config, write_links, workdir):
    write_links(["https://example.com/a"])
    (workdir / "shards").write_text("")

    with pytest.raises(ConfigurationError, match="not a directory"):
        make_config(shard_dir=workdir / "shards").validate()
