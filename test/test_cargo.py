import json
from unittest import TestCase

import pytest
from semantic_version import Version

from crate_freshness.cargo import CargoSpec, parse_spec, release_from_index_record, releases_from_index_file
from index_helpers import index_line


def _matches(spec: str, version: str) -> bool:
    return parse_spec(spec).match(Version(version))


class TestCargoSpec(TestCase):
    def test_bare_version_is_a_caret_requirement(self) -> None:
        assert _matches("0.10.0", "0.10.5")
        assert not _matches("0.10.0", "0.11.0")
        assert _matches("1.2", "1.9.0")
        assert not _matches("1.2", "2.0.0")

    def test_bare_prerelease_is_a_caret_requirement(self) -> None:
        assert _matches("1.0.0-x.1", "1.0.5")
        assert _matches("1.0.0-x.1", "1.0.0-x.2")
        assert not _matches("1.0.0-x.1", "2.0.0")

    def test_caret(self) -> None:
        assert _matches("^0.10.0", "0.10.1")
        assert not _matches("^0.10.0", "0.9.9")
        assert not _matches("^0.11.0", "0.10.1")

    def test_comparators_with_whitespace(self) -> None:
        assert _matches(">= 1.2.0, < 1.5.0", "1.4.9")
        assert not _matches(">= 1.2.0, < 1.5.0", "1.5.0")
        assert str(parse_spec(">= 1.2.0, < 1.5.0")) == ">= 1.2.0,< 1.5.0"

    def test_wildcards(self) -> None:
        assert _matches("*", "0.0.1")
        assert _matches("", "3.1.4")
        assert _matches("1.*", "1.7.0")
        assert not _matches("1.*", "2.0.0")

    def test_prereleases_need_an_explicit_comparator(self) -> None:
        assert not _matches("^0.10.0", "0.10.1-alpha")
        assert not _matches("*", "1.0.0-rc.1")
        assert _matches("=0.10.1-alpha", "0.10.1-alpha")
        assert not _matches("=0.10.1-alpha", "0.10.2-alpha")

    def test_invalid_requirement(self) -> None:
        with pytest.raises(ValueError, match="Invalid simple block"):
            parse_spec("not a version")

    def test_is_registered(self) -> None:
        assert isinstance(parse_spec("^1"), CargoSpec)
        assert CargoSpec.SYNTAX == "cargo"


class TestIndexRecords(TestCase):
    def test_release_from_index_record(self) -> None:
        line = index_line(
            "hyper",
            "0.14.27",
            deps=[
                {"name": "tokio", "req": "^1", "kind": "normal"},
                {"name": "futures", "req": "^0.3", "kind": None},
                {"name": "env_logger", "req": "^0.10", "kind": "dev"},
                {"name": "cc", "req": "1.0", "kind": "build"},
                {"name": "h2_alias", "package": "h2", "req": "^0.3.17"},
            ],
        )
        release = release_from_index_record(line)

        assert release.name == "hyper"
        assert release.version == Version("0.14.27")
        assert not release.yanked
        assert set(release.deps.main) == {"tokio", "futures", "h2"}
        assert set(release.deps.dev) == {"env_logger"}
        assert release.deps.build["cc"].required.match(Version("1.0.83"))
        assert str(release) == "hyper@0.14.27"

    def test_yanked_record(self) -> None:
        release = release_from_index_record(index_line("hyper", "0.10.1", yanked=True))
        assert release.yanked
        assert str(release) == "hyper@0.10.1 (yanked)"

    def test_unreadable_requirement_keeps_the_release(self) -> None:
        line = index_line("weird", "1.0.0", deps=[{"name": "other", "req": "~> 1.0", "kind": "normal"}])
        release = release_from_index_record(line)
        assert release.version == Version("1.0.0")
        assert release.deps.main == {}

    def test_malformed_records(self) -> None:
        for line in (
            "{not json",
            json.dumps({"vers": "1.0.0"}),
            json.dumps({"name": "hyper", "vers": "one"}),
            json.dumps({"name": "bad name", "vers": "1.0.0"}),
            index_line("hyper", "1.0.0", deps=[{"name": "x", "req": "*", "kind": "optional"}]),
        ):
            with pytest.raises(ValueError):  # noqa: PT011
                release_from_index_record(line)

    def test_index_file_skips_bad_lines(self) -> None:
        contents = "\n".join([index_line("hyper", "0.10.0"), "garbage", "", index_line("hyper", "0.10.1")])
        with self.assertLogs("crate_freshness.cargo", level="WARNING"):
            versions = [str(r.version) for r in releases_from_index_file(contents)]
        assert versions == ["0.10.0", "0.10.1"]
