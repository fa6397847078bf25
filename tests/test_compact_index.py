"""Tests for the compact index info format."""

import logging

import pytest

from registry.compact_index import dump_info, format_line, parse_info, parse_line
from versioning.version import Version


SAMPLE = """---
1.15.5 mini_portile2:~> 2.8.2,racc:~> 1.4|checksum:abc,ruby:>= 2.7&< 3.4.dev
1.15.5-x86_64-linux racc:~> 1.4|checksum:def,ruby:>= 2.7
1.16.0.rc1 racc:~> 1.4|checksum:ghi
"""


class TestParseLine:
    """Single info lines."""

    def test_version_platform_and_dependencies(self):
        candidate = parse_line("nokogiri", "1.15.5-x86_64-linux racc:~> 1.4|checksum:def,ruby:>= 2.7")
        assert candidate.version == Version("1.15.5")
        assert candidate.platform == "x86_64-linux"
        assert [(d.name, str(d.requirement)) for d in candidate.dependencies] == [("racc", "~> 1.4")]
        assert str(candidate.required_ruby_version) == ">= 2.7"

    def test_compound_requirement(self):
        candidate = parse_line("nokogiri", "1.15.5 racc:>= 1.4&< 2|checksum:abc")
        assert str(candidate.dependencies[0].requirement) == ">= 1.4, < 2"

    def test_no_dependencies(self):
        candidate = parse_line("rake", "13.1.0 |checksum:abc")
        assert candidate.dependencies == ()
        assert candidate.platform == "ruby"
        assert candidate.required_ruby_version is None

    def test_self_dependency_is_dropped(self):
        assert parse_line("a", "1.0 a:>= 0,b:>= 1").dependencies[0].name == "b"

    @pytest.mark.parametrize("line", ["", "not-a-version x:1", "1.0 broken"])
    def test_malformed(self, line):
        with pytest.raises(ValueError):
            parse_line("a", line)


class TestParseInfo:
    """Whole documents."""

    def test_sample(self):
        candidates = parse_info("nokogiri", SAMPLE)
        assert [c.full_name for c in candidates] == [
            "nokogiri-1.15.5",
            "nokogiri-1.15.5-x86_64-linux",
            "nokogiri-1.16.0.rc1",
        ]
        assert str(candidates[0].required_ruby_version) == ">= 2.7, < 3.4.dev"
        assert candidates[2].is_prerelease

    def test_malformed_lines_are_skipped(self, caplog):
        with caplog.at_level(logging.WARNING):
            candidates = parse_info("a", "---\n1.0 \n??? x\n2.0 \n")
        assert [str(c.version) for c in candidates] == ["1.0", "2.0"]
        assert "line 3" in caplog.text


class TestFormat:
    """Writing info documents back out."""

    def test_format_line(self):
        candidate = parse_line("nokogiri", "1.15.5-x86_64-linux racc:>= 1.4&< 2|ruby:>= 2.7")
        assert format_line(candidate) == "1.15.5-x86_64-linux racc:>= 1.4&< 2|ruby:>= 2.7"

    def test_dump_then_parse_preserves_candidates(self):
        original = parse_info("nokogiri", SAMPLE)
        text = dump_info(original)
        assert text.startswith("---\n")
        assert parse_info("nokogiri", text) == original
