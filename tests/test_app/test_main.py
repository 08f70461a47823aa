"""Tests for the command-line entry point."""

from timetools.__main__ import parse_args


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.log_level is None
        assert args.dry_run is False

    def test_options(self):
        args = parse_args(["--log-level", "debug", "--dry-run"])
        assert args.log_level == "debug"
        assert args.dry_run is True
