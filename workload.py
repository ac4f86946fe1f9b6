# workload.py

import logging
import os
import random
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from engine import MemoryFault, Protection, ReplacementPolicy, SegmentTable

logger = logging.getLogger(__name__)

# Layout used when no initial segment file is available
DEFAULT_SEGMENTS = [
    (0, 0, 10, Protection.READ_WRITE),
    (1, 20000, 5, Protection.READ_ONLY),
    (2, 40000, 8, Protection.READ_WRITE),
]


def parse_protection(token: str) -> str:
    """Map RO/R/READ to a read and RW/W/WRITE to a write."""
    value = token.strip().upper()
    if value in ("RO", "R", "READ"):
        return Protection.READ_ONLY
    if value in ("RW", "W", "WRITE"):
        return Protection.READ_WRITE
    raise ValueError(f"Unknown protection or access kind: {token!r}")


def _content_lines(lines: Iterable[str]):
    for lineno, raw in enumerate(lines, 1):
        line = raw.split("#", 1)[0].strip()
        if line:
            yield lineno, line


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class SimulatorConfig:
    """
    Settings for one simulated memory unit.

    Attributes:
        num_frames (int): Physical frames in the pool
        tlb_size (int): Translation cache capacity, 0 disables it
        page_size (int): Bytes per page and per frame
        policy (str): Frame eviction policy, "lru" or "fifo"
        residency (float): Chance that a page starts resident
        seed (Optional[int]): Seed for residency and latency; None is unseeded
    """
    num_frames: int = 10
    tlb_size: int = 4
    page_size: int = 1000
    policy: str = ReplacementPolicy.LRU
    residency: float = 0.3
    seed: Optional[int] = None

    def __post_init__(self):
        self.policy = self.policy.strip().lower()
        self.validate()

    def validate(self):
        if self.num_frames < 1:
            raise ValueError("Number of frames must be at least 1.")
        if self.tlb_size < 0:
            raise ValueError("TLB size cannot be negative.")
        if self.page_size < 1:
            raise ValueError("Page size must be at least 1.")
        if self.policy not in ReplacementPolicy.ALL:
            raise ValueError("Replacement policy must be 'lru' or 'fifo'.")
        if not 0.0 <= self.residency <= 1.0:
            raise ValueError("Residency must be between 0 and 1.")

    def build_table(self) -> SegmentTable:
        return SegmentTable(
            num_frames=self.num_frames,
            tlb_size=self.tlb_size,
            page_size=self.page_size,
            policy=self.policy,
            rng=random.Random(self.seed),
            residency=self.residency,
        )

    def __str__(self):
        return (
            f"Physical memory has {self.num_frames} frames of {self.page_size} bytes.\n"
            f"TLB holds {self.tlb_size} entries.\n"
            f"Replacement policy is {self.policy.upper()}.\n"
            f"Initial residency is {self.residency:.0%}."
        )


# =============================================================================
# INITIAL SEGMENTS
# =============================================================================

@dataclass
class SegmentSpec:
    seg_id: int
    base: int
    limit: int
    protection: str


def parse_segments(lines: Iterable[str]) -> List[SegmentSpec]:
    """Parse ``id base limit RO|RW`` lines."""
    specs = []
    for lineno, line in _content_lines(lines):
        parts = line.split()
        if len(parts) != 4:
            raise ValueError(f"line {lineno}: expected 'id base limit RO|RW', got {line!r}")
        try:
            seg_id, base, limit = (int(p) for p in parts[:3])
        except ValueError:
            raise ValueError(f"line {lineno}: id, base and limit must be integers") from None
        if seg_id < 0:
            raise ValueError(f"line {lineno}: segment id must be non-negative, got {seg_id}")
        if limit < 1:
            raise ValueError(f"line {lineno}: segment limit must be at least 1 page, got {limit}")
        specs.append(SegmentSpec(seg_id, base, limit, parse_protection(parts[3])))
    return specs


def load_initial_segments(path: Optional[str]) -> List[SegmentSpec]:
    if path is None or not os.path.exists(path):
        logger.warning("Segment file %s not found; using default layout", path)
        return [SegmentSpec(*row) for row in DEFAULT_SEGMENTS]
    with open(path) as infile:
        specs = parse_segments(infile)
    logger.info("Loaded %d segments from %s", len(specs), path)
    return specs


def apply_segments(table: SegmentTable, specs: Iterable[SegmentSpec]):
    for spec in specs:
        table.add_segment(spec.seg_id, spec.base, spec.limit, spec.protection)


# =============================================================================
# TRANSLATION REQUESTS
# =============================================================================

@dataclass
class TranslationRequest:
    segment: int
    directory: int
    page: int
    offset: int
    access: str

    def __str__(self):
        return f"({self.segment},{self.directory},{self.page},{self.offset},{self.access})"


def parse_request(line: str) -> TranslationRequest:
    parts = line.split()
    if len(parts) != 5:
        raise ValueError(f"expected 'segment directory page offset RO|RW', got {line!r}")
    segment, directory, page, offset = (int(p) for p in parts[:4])
    return TranslationRequest(segment, directory, page, offset, parse_protection(parts[4]))


def parse_requests(lines: Iterable[str]) -> List[TranslationRequest]:
    requests = []
    for lineno, line in _content_lines(lines):
        try:
            requests.append(parse_request(line))
        except ValueError as exc:
            raise ValueError(f"line {lineno}: {exc}") from None
    return requests


def read_requests(path: str) -> List[TranslationRequest]:
    with open(path) as infile:
        return parse_requests(infile)


def generate_random_requests(rng: random.Random, count: int, num_segments: int = 5,
                             num_directories: int = 2, num_pages: int = 15,
                             max_offset: int = 1050) -> List[TranslationRequest]:
    """
    Draw ``count`` references, some deliberately out of range.

    The default bounds overshoot the default segment layout and page size so
    the workload mixes successful translations with every kind of fault.
    """
    return [
        TranslationRequest(
            segment=rng.randrange(num_segments),
            directory=rng.randrange(num_directories),
            page=rng.randrange(num_pages),
            offset=rng.randrange(max_offset),
            access=rng.choice(Protection.ALL),
        )
        for _ in range(count)
    ]


# =============================================================================
# REPLAY
# =============================================================================

@dataclass
class BatchReport:
    lines: List[str] = field(default_factory=list)
    translations: int = 0
    faults: int = 0

    @property
    def fault_rate(self) -> float:
        """Percentage of requests that faulted."""
        return self.faults / self.translations * 100 if self.translations > 0 else 0.0

    def render(self) -> str:
        return "\n".join(self.lines + [f"Fault Rate: {self.fault_rate:.2f}%"]) + "\n"


def run_batch(table: SegmentTable, requests: Iterable[TranslationRequest]) -> BatchReport:
    """Replay requests in order, recording a timeline line for each."""
    report = BatchReport()
    for req in requests:
        report.translations += 1
        try:
            address = table.translate(req.segment, req.directory, req.page, req.offset, req.access)
        except MemoryFault as exc:
            report.faults += 1
            report.lines.append(f"Time {table.time}: Error {exc}")
            continue
        report.lines.append(
            f"Time {table.time}: Address ({req.segment},{req.page}) -> Physical {address}"
        )
    logger.info("Replayed %d requests, %d faults", report.translations, report.faults)
    return report


def write_report(report: BatchReport, path: str):
    with open(path, "w") as outfile:
        outfile.write(report.render())
