"""Tests for the status reply parser."""

import pytest

from conftest import STATUS_TEXT
from freeswitch_exporter.collectors.catalog import default_catalog
from freeswitch_exporter.collectors.status_parser import StatusParser
from freeswitch_exporter.utils.errors import ScrapeStage, StatusPatternMismatchError


@pytest.fixture
def parser():
    return StatusParser(default_catalog().status_pattern)


class TestStatusParser:

    def test_parse_groups_in_order(self, parser):
        groups = parser.parse(STATUS_TEXT)

        assert groups == ["15", "2", "5", "3", "0", "30", "4", "1", "1000", "0.00", "98.33"]

    def test_crlf_line_endings(self, parser):
        groups = parser.parse(STATUS_TEXT.replace("\n", "\r\n"))

        assert len(groups) == 11
        assert groups[-1] == "98.33"

    def test_no_match(self, parser):
        with pytest.raises(StatusPatternMismatchError) as exc_info:
            parser.parse("FreeSWITCH is not ready\n")

        assert exc_info.value.match_count == 0
        assert exc_info.value.stage == ScrapeStage.STATUS
        assert "got 0" in str(exc_info.value)

    def test_missing_line(self, parser):
        text = STATUS_TEXT.replace("1000 session(s) max\n", "")

        with pytest.raises(StatusPatternMismatchError):
            parser.parse(text)

    def test_repeated_block(self, parser):
        with pytest.raises(StatusPatternMismatchError) as exc_info:
            parser.parse(STATUS_TEXT + STATUS_TEXT)

        assert exc_info.value.match_count == 2

    def test_integer_cpu_does_not_match(self, parser):
        """Idle CPU figures must carry a decimal point."""
        text = STATUS_TEXT.replace("0.00/98.33", "0/98")

        with pytest.raises(StatusPatternMismatchError):
            parser.parse(text)

    @pytest.mark.parametrize("old,new", [
        ("15 session(s) since startup", "١٥ session(s) since startup"),
        ("1000 session(s) max", "１０００ session(s) max"),
        ("since startup\n", "since startup\u2003"),
    ])
    def test_non_ascii_digits_and_spaces_do_not_match(self, parser, old, new):
        """Only ASCII digits and whitespace count, as FreeSWITCH prints them."""
        with pytest.raises(StatusPatternMismatchError):
            parser.parse(STATUS_TEXT.replace(old, new))
