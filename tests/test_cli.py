import io
import random

import pytest

from cli import main, parse_args, prompt_settings, run_command
from engine import SegmentTable


@pytest.fixture
def table():
    return SegmentTable(rng=random.Random(0), residency=0.0)


def run(table, *lines):
    out = io.StringIO()
    for line in lines:
        run_command(table, line, out)
    return out.getvalue()


def test_add_and_translate(table):
    output = run(table, "add 0 100 10 RW", "translate 0 0 5 10 RO")
    assert "Segment 0 added" in output
    assert "Time 1: Physical Address: 110" in output


def test_faults_are_reported_not_raised(table):
    output = run(table, "remove 3", "translate 9 0 0 0 RO")
    assert "Error: Invalid Segment" in output
    assert "Error: Segmentation Fault" in output
    assert table.time == 1


def test_bad_arguments_and_unknown_commands(table):
    output = run(table, "add 0 x", "translate 0 0", "frobnicate")
    assert output.count("Error: bad arguments") == 2
    assert "Unknown command: frobnicate" in output


def test_stats_map_and_quit(table, tmp_path):
    output = run(table, "add 1 0 4 RO", "translate 1 0 0 0 RO", "stats", "map", "")
    assert "Segment 1: 0 faults" in output
    assert "TLB Hit Rate" in output
    assert "Page 0: Frame=0" in output
    assert run_command(table, "quit", io.StringIO()) is False
    assert run_command(table, "random 5", io.StringIO(), rng=random.Random(1),
                       random_log=str(tmp_path / "random.txt")) is True
    assert table.time == 6


def test_main_batch_mode_writes_log(tmp_path, capsys):
    init = tmp_path / "init.txt"
    init.write_text("0 0 10 RW\n")
    batch = tmp_path / "batch.txt"
    batch.write_text("0 0 5 10 RO\n0 0 10 0 RO\n")
    log = tmp_path / "results.txt"

    main(["--init", str(init), "--batch", str(batch), "--log", str(log),
          "--residency", "0", "--seed", "1"])

    output = capsys.readouterr().out
    assert "Time 1: Address (0,5) -> Physical 10" in output
    assert "Fault Rate: 50.00%" in output
    assert "System Statistics" in output
    assert log.read_text().startswith("Time 1: Address (0,5) -> Physical 10")


def test_main_rejects_bad_config(tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(["--init", str(tmp_path / "none.txt"), "--frames", "0", "--batch", "x"])
    assert exc.value.code == 2


def test_main_rejects_invalid_segment_file(tmp_path, capsys):
    init = tmp_path / "init.txt"
    init.write_text("0 0 0 RW\n")
    batch = tmp_path / "batch.txt"
    batch.write_text("0 0 0 0 RO\n")
    with pytest.raises(SystemExit) as exc:
        main(["--init", str(init), "--batch", str(batch), "--log", str(tmp_path / "out.txt")])
    assert exc.value.code == 2
    assert "segment limit must be at least 1 page" in capsys.readouterr().err


def test_random_command_writes_log(table, tmp_path):
    log = tmp_path / "random.txt"
    out = io.StringIO()
    run_command(table, "add 0 0 10 RW", out)
    run_command(table, "random 4", out, rng=random.Random(2), random_log=str(log))
    assert f"Results logged to {log}" in out.getvalue()
    assert len(log.read_text().splitlines()) == 5
    assert log.read_text().startswith("Time 1:")


def test_prompt_settings_keeps_defaults_on_empty_answers():
    answers = iter(["4", "", "256", "FIFO"])
    args = prompt_settings(parse_args([]), read=lambda question: next(answers))
    assert (args.frames, args.tlb, args.pagesize, args.replace) == (4, 4, 256, "fifo")
