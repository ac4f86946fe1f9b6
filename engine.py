# engine.py

import logging
import random
from collections import deque, OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# (segment id, directory id, page id)
PageKey = Tuple[int, int, int]


class Protection:
    """
    Access rights of a segment or page, also used as the access kind of a request.

    READ_ONLY: reads only; as an access kind it means "read"
    READ_WRITE: reads and writes; as an access kind it means "write"
    """
    READ_ONLY = "RO"
    READ_WRITE = "RW"

    ALL = (READ_ONLY, READ_WRITE)


class ReplacementPolicy:
    """
    Frame eviction policies.

    FIFO: evict the frame that was allocated earliest
    LRU:  evict the frame that was touched least recently
    """
    FIFO = "fifo"
    LRU = "lru"

    ALL = (FIFO, LRU)


# -----------------------------
# Faults
# -----------------------------

class MemoryFault(Exception):
    """Base class for every expected, recoverable translation outcome."""


class SegmentFault(MemoryFault):
    pass


class ProtectionViolation(MemoryFault):
    pass


class PageFault(MemoryFault):
    pass


class OffsetFault(MemoryFault):
    pass


class InvalidSegment(MemoryFault):
    pass


class InvalidPage(MemoryFault):
    pass


# -----------------------------
# Records
# -----------------------------

@dataclass
class Segment:
    """A limit of 0 marks a tombstone: no segment lives at this id."""
    base_address: int = 0
    limit: int = 0
    protection: str = Protection.READ_WRITE
    fault_count: int = 0

    @property
    def live(self) -> bool:
        return self.limit > 0


@dataclass
class Page:
    frame_number: Optional[int] = None
    present: bool = False
    protection: str = Protection.READ_WRITE
    last_access: int = 0

    def clear(self):
        self.frame_number = None
        self.present = False


# -----------------------------
# Physical frames
# -----------------------------

class FrameStore:
    """
    Fixed pool of physical frames with LRU or FIFO eviction.

    Every occupied frame records the page that owns it, so an eviction can
    report its victim through ``on_evict(owner, frame)`` before the frame is
    handed to the new owner.
    """

    def __init__(self, num_frames: int, policy: str = ReplacementPolicy.LRU,
                 on_evict: Optional[Callable[[PageKey, int], None]] = None):
        if num_frames < 1:
            raise ValueError("Frame count must be at least 1")
        if policy not in ReplacementPolicy.ALL:
            raise ValueError(f"Unknown replacement policy: {policy!r}")
        self.num_frames = num_frames
        self.policy = policy
        self.on_evict = on_evict

        self.owners: List[Optional[PageKey]] = [None] * num_frames
        # LRU: least recent first. FIFO: oldest allocation first.
        self.lru_order: OrderedDict = OrderedDict()
        self.fifo_queue: deque = deque()

        self.evictions = 0

    def _find_free(self) -> Optional[int]:
        return next((i for i, owner in enumerate(self.owners) if owner is None), None)

    def _enqueue(self, frame: int):
        if self.policy == ReplacementPolicy.LRU:
            self.lru_order[frame] = None
        else:
            self.fifo_queue.append(frame)

    def _select_victim(self) -> int:
        # The victim goes straight back to the tail under its new owner
        if self.policy == ReplacementPolicy.LRU:
            frame, _ = self.lru_order.popitem(last=False)
            self.lru_order[frame] = None
        else:
            frame = self.fifo_queue.popleft()
            self.fifo_queue.append(frame)
        return frame

    def allocate(self, owner: PageKey) -> int:
        """
        Hand a frame to ``owner``, evicting per policy when the pool is full.

        Args:
            owner (PageKey): (segment, directory, page) that will own the frame

        Returns:
            int: The allocated frame index
        """
        frame = self._find_free()
        if frame is not None:
            self.owners[frame] = owner
            self._enqueue(frame)
            return frame

        frame = self._select_victim()
        victim = self.owners[frame]
        self.owners[frame] = owner
        self.evictions += 1
        logger.debug("Evicted %s from frame %d for %s (%s)", victim, frame, owner, self.policy)
        if self.on_evict is not None and victim is not None:
            self.on_evict(victim, frame)
        return frame

    def claim_free(self, owner: PageKey) -> Optional[int]:
        """Allocate only if a free frame exists; never evicts."""
        if self._find_free() is None:
            return None
        return self.allocate(owner)

    def touch(self, frame: int):
        """Promote ``frame`` to most recently used. FIFO ignores recency."""
        if self.policy == ReplacementPolicy.LRU and frame in self.lru_order:
            self.lru_order.move_to_end(frame)

    def free(self, frame: int):
        if not 0 <= frame < self.num_frames or self.owners[frame] is None:
            return
        self.owners[frame] = None
        self.lru_order.pop(frame, None)
        if frame in self.fifo_queue:
            self.fifo_queue.remove(frame)

    def owner_of(self, frame: int) -> Optional[PageKey]:
        return self.owners[frame]

    def used(self) -> int:
        return sum(1 for owner in self.owners if owner is not None)

    def utilization(self) -> float:
        return self.used() / self.num_frames * 100

    def order(self) -> List[int]:
        """Frames in eviction order, next victim first."""
        if self.policy == ReplacementPolicy.LRU:
            return list(self.lru_order)
        return list(self.fifo_queue)

    def snapshot(self) -> List[Optional[PageKey]]:
        return list(self.owners)


# -----------------------------
# Page tables
# -----------------------------

class PageTable:
    """
    Fixed-size table of pages for one directory entry of one segment.

    When built with a generator and a residency probability, a random
    minority of pages starts resident on real free frames.
    """

    def __init__(self, segment_id: int, directory_id: int, capacity: int,
                 frame_store: Optional[FrameStore] = None,
                 rng: Optional[random.Random] = None, residency: float = 0.0):
        self.segment_id = segment_id
        self.directory_id = directory_id
        self.pages: List[Page] = [Page() for _ in range(capacity)]
        if frame_store is not None and rng is not None and residency > 0:
            self._seed_residency(frame_store, rng, residency)

    def _seed_residency(self, frame_store: FrameStore, rng: random.Random, residency: float):
        for page_id, page in enumerate(self.pages):
            if rng.random() >= residency:
                continue
            frame = frame_store.claim_free(self._key(page_id))
            if frame is None:
                break
            page.frame_number = frame
            page.present = True
            page.protection = rng.choice(Protection.ALL)

    def _key(self, page_id: int) -> PageKey:
        return (self.segment_id, self.directory_id, page_id)

    @property
    def capacity(self) -> int:
        return len(self.pages)

    def is_present(self, page_id: int) -> bool:
        return 0 <= page_id < len(self.pages) and self.pages[page_id].present

    def resolve(self, page_id: int, access_kind: str, frame_store: FrameStore,
                logical_time: int) -> int:
        """
        Map a page to its frame, allocating one on first touch.

        The first access fixes the page's protection. Repeat accesses enforce
        it and promote the frame in LRU order.

        Args:
            page_id (int): Page index within this table
            access_kind (str): Protection.READ_ONLY for reads, READ_WRITE for writes
            frame_store (FrameStore): Pool to allocate from
            logical_time (int): Clock value recorded as the page's last access

        Returns:
            int: The frame bound to the page

        Raises:
            InvalidPage: If page_id is outside the table
            ProtectionViolation: On a write to a read-only page
        """
        if not 0 <= page_id < len(self.pages):
            raise InvalidPage(f"Invalid Page: page {page_id} outside table of {len(self.pages)}")

        page = self.pages[page_id]
        if not page.present:
            frame = frame_store.allocate(self._key(page_id))
            page.frame_number = frame
            page.present = True
            page.protection = access_kind
            page.last_access = logical_time
            return frame

        if access_kind == Protection.READ_WRITE and page.protection == Protection.READ_ONLY:
            raise ProtectionViolation(
                f"Protection Violation: cannot write to read-only page {page_id}"
            )

        page.last_access = logical_time
        frame_store.touch(page.frame_number)
        return page.frame_number

    def evict(self, page_id: int):
        if 0 <= page_id < len(self.pages):
            self.pages[page_id].clear()

    def release(self, frame_store: FrameStore) -> int:
        freed = 0
        for page in self.pages:
            if page.present:
                frame_store.free(page.frame_number)
                page.clear()
                freed += 1
        return freed

    def present_pages(self) -> List[Tuple[int, Page]]:
        return [(i, p) for i, p in enumerate(self.pages) if p.present]


class DirectoryTable:
    """Lazily grown list of page tables for one segment."""

    def __init__(self, segment_id: int, frame_store: FrameStore,
                 rng: Optional[random.Random] = None, residency: float = 0.0):
        self.segment_id = segment_id
        self.frame_store = frame_store
        self.rng = rng
        self.residency = residency
        self.tables: List[PageTable] = []

    def get_or_create(self, directory_id: int, page_capacity: int) -> PageTable:
        while directory_id >= len(self.tables):
            self.tables.append(PageTable(self.segment_id, len(self.tables), page_capacity,
                                         self.frame_store, self.rng, self.residency))
        return self.tables[directory_id]

    def get(self, directory_id: int) -> Optional[PageTable]:
        if 0 <= directory_id < len(self.tables):
            return self.tables[directory_id]
        return None

    def release(self) -> int:
        freed = sum(table.release(self.frame_store) for table in self.tables)
        self.tables = []
        return freed


# -----------------------------
# Translation cache
# -----------------------------

class TranslationCache:
    """
    LRU cache from (segment, directory, page) to frame.

    Its recency order is independent of the frame pool's. A capacity of 0
    disables caching: every lookup misses and inserts are dropped.
    """

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError("TLB capacity cannot be negative")
        self.capacity = capacity
        self._entries: OrderedDict = OrderedDict()
        self.hits = 0
        self.lookups = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: PageKey) -> bool:
        return key in self._entries

    def lookup(self, seg: int, directory: int, page: int) -> Optional[int]:
        self.lookups += 1
        key = (seg, directory, page)
        if key in self._entries:
            self._entries.move_to_end(key)
            self.hits += 1
            return self._entries[key]
        return None

    def insert(self, seg: int, directory: int, page: int, frame: int):
        if self.capacity == 0:
            return
        key = (seg, directory, page)
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self.capacity:
            self._entries.popitem(last=False)
        self._entries[key] = frame

    def invalidate(self, seg: int, directory: int, page: int) -> bool:
        return self._entries.pop((seg, directory, page), None) is not None

    def invalidate_segment(self, seg: int) -> int:
        stale = [key for key in self._entries if key[0] == seg]
        for key in stale:
            del self._entries[key]
        return len(stale)

    @property
    def misses(self) -> int:
        return self.lookups - self.hits

    @property
    def hit_rate(self) -> float:
        return self.hits / self.lookups if self.lookups > 0 else 0.0

    def entries(self) -> List[Tuple[PageKey, int]]:
        """Cached mappings, least recently used first."""
        return list(self._entries.items())


# -----------------------------
# Segment table
# -----------------------------

class SegmentTable:
    """
    Coordinator of the whole translation path.

    Owns every segment record and its directory table, the frame pool and
    the translation cache. ``translate`` walks segment checks, the cache,
    then the directory/page tables, advancing one logical clock tick and
    accruing one simulated latency sample per attempt.

    Attributes:
        segments (List[Segment]): Sparse table indexed by segment id
        directories (Dict[int, DirectoryTable]): Directory table per live segment
        frame_store (FrameStore): Physical frame pool
        tlb (TranslationCache): Translation cache shared by all segments
        time (int): Logical clock, one tick per translation attempt
        event_log (deque): Most recent human readable events, oldest dropped first
    """

    SUGGESTION_RATIO = 0.2
    EVENT_LOG_SIZE = 500

    def __init__(self, num_frames: int = 10, tlb_size: int = 4, page_size: int = 1000,
                 policy: str = ReplacementPolicy.LRU, rng: Optional[random.Random] = None,
                 residency: float = 0.3, max_latency: int = 10):
        if page_size < 1:
            raise ValueError("Page size must be at least 1")
        if max_latency < 1:
            raise ValueError("Maximum latency must be at least 1")
        self.page_size = page_size
        self.residency = residency
        self.max_latency = max_latency
        self.rng = rng if rng is not None else random.Random()

        self.frame_store = FrameStore(num_frames, policy, on_evict=self._on_evict)
        self.tlb = TranslationCache(tlb_size)
        self.segments: List[Segment] = []
        self.directories: Dict[int, DirectoryTable] = {}

        # Logical clock and accounting
        self.time = 0
        self.translation_count = 0
        self.total_latency = 0
        self.total_faults = 0
        self.system_faults = 0
        self.allocation_faults = 0

        self.event_log: deque = deque(maxlen=self.EVENT_LOG_SIZE)

    # =========================================================================
    # SEGMENT LIFECYCLE
    # =========================================================================

    def _is_live(self, seg_id: int) -> bool:
        return 0 <= seg_id < len(self.segments) and self.segments[seg_id].live

    def add_segment(self, seg_id: int, base: int, limit: int, protection: str):
        """
        Create a segment with an empty directory table.

        A live segment already at ``seg_id`` is removed first, so its frames
        return to the pool and its cached translations are purged.

        Raises:
            ValueError: On a negative id, a non-positive limit or unknown protection
        """
        if seg_id < 0:
            raise ValueError(f"Segment id must be non-negative, got {seg_id}")
        if limit < 1:
            raise ValueError(f"Segment limit must be at least 1 page, got {limit}")
        if protection not in Protection.ALL:
            raise ValueError(f"Unknown protection: {protection!r}")

        if self._is_live(seg_id):
            logger.info("Segment %d already exists; replacing it", seg_id)
            self.remove_segment(seg_id)

        if seg_id >= len(self.segments):
            self.segments.extend(Segment() for _ in range(seg_id + 1 - len(self.segments)))
        self.segments[seg_id] = Segment(base, limit, protection)
        self.directories[seg_id] = DirectoryTable(seg_id, self.frame_store, self.rng, self.residency)

        logger.info("Segment %d added: base=%d limit=%d %s", seg_id, base, limit, protection)
        self.event_log.append(f"Segment {seg_id} added: base={base} limit={limit} {protection}")

    def remove_segment(self, seg_id: int):
        if not self._is_live(seg_id):
            raise InvalidSegment(f"Invalid Segment: cannot remove segment {seg_id}")

        freed = self.directories.pop(seg_id).release()
        purged = self.tlb.invalidate_segment(seg_id)
        self.segments[seg_id] = Segment()

        logger.info("Segment %d removed: %d frames freed, %d TLB entries purged", seg_id, freed, purged)
        self.event_log.append(f"Segment {seg_id} removed ({freed} frames freed)")

    def _on_evict(self, owner: PageKey, frame: int):
        seg_id, dir_id, page_id = owner
        directory = self.directories.get(seg_id)
        table = directory.get(dir_id) if directory is not None else None
        if table is not None:
            table.evict(page_id)
        self.tlb.invalidate(seg_id, dir_id, page_id)
        self.event_log.append(f"Evicted: S{seg_id}/D{dir_id}/P{page_id} from Frame {frame}")

    # =========================================================================
    # TRANSLATION
    # =========================================================================

    def translate(self, segment: int, directory: int, page: int, offset: int, access: str) -> int:
        """
        Translate a (segment, directory, page, offset) reference to a physical address.

        Args:
            segment (int): Segment id
            directory (int): Directory index within the segment
            page (int): Page index within the directory's page table
            offset (int): Byte offset within the page
            access (str): Protection.READ_ONLY to read, Protection.READ_WRITE to write

        Returns:
            int: base_address + frame * page_size + offset

        Raises:
            SegmentFault, ProtectionViolation, PageFault, OffsetFault
        """
        if access not in Protection.ALL:
            raise ValueError(f"Unknown access kind: {access!r}")

        self.time += 1
        self.translation_count += 1
        self.total_latency += self.rng.randint(1, self.max_latency)

        try:
            address = self._translate(segment, directory, page, offset, access)
        except MemoryFault as exc:
            self.total_faults += 1
            logger.debug("t=%d fault: %s", self.time, exc)
            self.event_log.append(f"Time {self.time}: {exc}")
            raise

        self.event_log.append(
            f"Time {self.time}: ({segment},{directory},{page},{offset}) -> {address}"
        )
        return address

    def _fault(self, record: Segment, fault: MemoryFault) -> MemoryFault:
        record.fault_count += 1
        return fault

    def _translate(self, segment, directory, page, offset, access) -> int:
        if not 0 <= segment < len(self.segments):
            self.system_faults += 1
            raise SegmentFault(f"Segmentation Fault: invalid segment {segment}")

        record = self.segments[segment]
        if not record.live:
            raise self._fault(record, SegmentFault(f"Segmentation Fault: invalid segment {segment}"))

        if access == Protection.READ_WRITE and record.protection == Protection.READ_ONLY:
            raise self._fault(record, ProtectionViolation(
                f"Protection Violation: cannot write to read-only segment {segment}"
            ))

        frame = self.tlb.lookup(segment, directory, page)
        if frame is not None:
            if not 0 <= offset < self.page_size:
                raise self._fault(record, self._offset_fault(offset))
            return record.base_address + frame * self.page_size + offset

        if directory < 0 or not 0 <= page < record.limit:
            raise self._fault(record, PageFault(
                f"Page Fault: page {page} (directory {directory}) exceeds limit {record.limit}"
            ))
        if not 0 <= offset < self.page_size:
            raise self._fault(record, self._offset_fault(offset))

        table = self.directories[segment].get_or_create(directory, record.limit)
        if not table.is_present(page):
            self.allocation_faults += 1
        try:
            frame = table.resolve(page, access, self.frame_store, self.time)
        except (ProtectionViolation, InvalidPage) as exc:
            raise self._fault(record, exc)

        self.tlb.insert(segment, directory, page, frame)
        return record.base_address + frame * self.page_size + offset

    def _offset_fault(self, offset: int) -> OffsetFault:
        return OffsetFault(f"Offset Fault: offset {offset} exceeds page size {self.page_size}")

    # =========================================================================
    # REPORTING
    # =========================================================================

    def live_segments(self) -> List[Tuple[int, Segment]]:
        return [(i, s) for i, s in enumerate(self.segments) if s.live]

    def stats(self) -> Dict[str, object]:
        """
        Summarize the run so far.

        Returns:
            Dict[str, object]: Statistics including:
                - segment_faults: fault count per live segment id
                - average_latency: mean simulated latency per attempt
                - utilization: occupied frames as a percentage
                - tlb_hit_rate: TLB hits / TLB lookups
                - fault_rate: faults / translation attempts
                - suggestions: segment ids whose faults exceed 20% of attempts
        """
        count = self.translation_count
        segment_faults = {i: s.fault_count for i, s in self.live_segments()}
        return {
            "segment_faults": segment_faults,
            "average_latency": self.total_latency / count if count > 0 else 0.0,
            "utilization": self.frame_store.utilization(),
            "tlb_hit_rate": self.tlb.hit_rate,
            "tlb_hits": self.tlb.hits,
            "tlb_lookups": self.tlb.lookups,
            "tlb_entries": self.tlb.entries(),
            "translations": count,
            "faults": self.total_faults,
            "system_faults": self.system_faults,
            "allocation_faults": self.allocation_faults,
            "evictions": self.frame_store.evictions,
            "fault_rate": self.total_faults / count if count > 0 else 0.0,
            "suggestions": [i for i, faults in segment_faults.items()
                            if faults > self.SUGGESTION_RATIO * count],
        }

    def memory_map(self) -> List[Dict[str, object]]:
        """Live segments with their directories and present pages."""
        dump = []
        for seg_id, record in self.live_segments():
            directories = []
            for dir_id, table in enumerate(self.directories[seg_id].tables):
                directories.append({
                    "directory": dir_id,
                    "pages": [
                        {
                            "page": page_id,
                            "frame": p.frame_number,
                            "protection": p.protection,
                            "last_access": p.last_access,
                        }
                        for page_id, p in table.present_pages()
                    ],
                })
            dump.append({
                "segment": seg_id,
                "base": record.base_address,
                "limit": record.limit,
                "protection": record.protection,
                "faults": record.fault_count,
                "directories": directories,
            })
        return dump
