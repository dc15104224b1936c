"""Tests for the quest-hud command-line interface."""

from __future__ import annotations

import io

import pytest

from quest_hud.cli import build_parser, main
from quest_hud.config import MAX_LINE_LENGTH, MAX_LINES_PER_SCREEN, SCROLL_DELAY_MS
from quest_hud.store.database import QuestDatabase
from quest_hud.store.seed import SAMPLE_QUESTS

TEN_LINES = "\n".join("line {}".format(i) for i in range(10))


class TestParser:
    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_preview_defaults(self):
        args = build_parser().parse_args(["preview", "hello"])
        assert args.text == "hello"
        assert args.width == MAX_LINE_LENGTH
        assert args.lines == MAX_LINES_PER_SCREEN
        assert args.delay_ms == SCROLL_DELAY_MS
        assert args.no_wait is False

    def test_serve_options(self):
        args = build_parser().parse_args(["serve", "--host", "0.0.0.0", "--port", "9000"])
        assert (args.host, args.port) == ("0.0.0.0", 9000)


class TestPreview:
    def test_short_text_single_frame(self, capsys):
        main(["preview", "Hello glasses", "--title", "Hi", "--no-wait"])
        out, err = capsys.readouterr()
        assert "Hi [until replaced]" in out
        assert "| Hello glasses" in out
        assert "Rendered 1 frame(s)" in err

    def test_long_text_scrolls(self, capsys):
        main(["preview", TEN_LINES, "--lines", "4", "--delay-ms", "10", "--no-wait"])
        out, err = capsys.readouterr()
        assert "Rendered 7 frame(s)" in err
        assert out.count("Preview [15ms]") == 6
        assert out.count("Preview [40ms]") == 1

    def test_reads_stdin(self, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("from stdin"))
        main(["preview", "-", "--no-wait"])
        assert "| from stdin" in capsys.readouterr().out

    def test_invalid_width_exits_2(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["preview", "text", "--width", "0"])
        assert excinfo.value.code == 2
        assert "Error:" in capsys.readouterr().err


class TestSeed:
    def test_seed_creates_database(self, tmp_path, capsys):
        db_path = str(tmp_path / "data" / "quests.db")
        main(["seed", "--db", db_path])
        assert "Inserted {}".format(len(SAMPLE_QUESTS)) in capsys.readouterr().err

        main(["seed", "--db", db_path])
        assert "nothing to do" in capsys.readouterr().err

        database = QuestDatabase(db_path)
        try:
            assert database.count_quest_templates() == len(SAMPLE_QUESTS)
        finally:
            database.close()
