import random

from engine import Protection, SegmentTable
from utils import FREE_COLOR, format_memory_map, format_stats, frame_label, get_color


def test_colors_are_stable_per_segment():
    assert get_color(None) == FREE_COLOR
    assert get_color(3) == get_color(3)
    assert get_color(0) != get_color(1)


def test_frame_label():
    assert frame_label(2, None) == "F2: Free"
    assert frame_label(0, (1, 0, 4)) == "F0: S1/D0/P4"


def test_format_stats_and_map():
    table = SegmentTable(rng=random.Random(0), residency=0.0)
    table.add_segment(0, 0, 2, Protection.READ_WRITE)
    table.translate(0, 0, 1, 0, Protection.READ_WRITE)
    table.translate(0, 0, 1, 0, Protection.READ_WRITE)

    text = format_stats(table.stats())
    assert "Segment 0: 0 faults" in text
    assert " 0:0:1 -> Frame 0" in text
    assert "TLB Hit Rate: 50.00%" in text
    assert "Physical Memory Utilization: 10.00%" in text

    text = format_memory_map(table.memory_map())
    assert "Segment 0: Base=0, Limit=2, Protection=RW, Faults=0" in text
    assert "  Page 1: Frame=0, Protection=RW, LastAccess=1" in text
