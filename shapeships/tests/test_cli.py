"""
Tests for the command-line interface.
"""

import asyncio

import pytest

from ..cli import main, run_demo


class TestCLI:

    def test_phases(self, capsys):
        main(["phases"])
        out = capsys.readouterr().out
        assert "build.drawing" in out
        assert "BATTLE PHASE / End of Turn Resolution" in out

    def test_roll(self, capsys):
        main(["roll", "--count", "4"])
        values = [int(v) for v in capsys.readouterr().out.split()]
        assert len(values) == 4
        assert all(1 <= v <= 6 for v in values)

    def test_roll_rejects_zero(self):
        with pytest.raises(SystemExit):
            main(["roll", "--count", "0"])

    def test_no_command(self):
        with pytest.raises(SystemExit):
            main([])

    def test_demo_plays_to_turn_limit(self, capsys):
        snapshot = asyncio.run(run_demo(2, ("human", "centaur")))
        assert snapshot.is_finished
        assert snapshot.phase_key == "game_over"
        assert snapshot.winner is None
        assert "Turn" in capsys.readouterr().out
