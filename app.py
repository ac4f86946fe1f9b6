"""
Segmented Paging Visualizer — Segments, Directories, TLB & Frame Replacement

This application drives the translation engine in ``engine.py`` and
visualizes how a (segment, directory, page, offset) reference becomes a
physical address:
    - Segment table with base/limit/protection checks
    - Two-level paging (directory table -> page table)
    - Translation cache (TLB) with LRU eviction
    - Physical frame pool with FIFO or LRU replacement

Built with Streamlit for the web interface and Plotly for visualizations.
"""

# =============================================================================
# IMPORTS
# =============================================================================

import logging

import plotly.graph_objects as go            # Interactive plotting library
import streamlit as st                       # Web application framework

from engine import MemoryFault, Protection, ReplacementPolicy, SegmentTable
from utils import frame_label, get_color
from workload import (SimulatorConfig, apply_segments, generate_random_requests,
                      load_initial_segments, parse_requests, run_batch)

logger = logging.getLogger(__name__)


# =============================================================================
# STREAMLIT UI - Web Application Interface
# =============================================================================

st.set_page_config(page_title="Segmented Paging Visualizer", layout="wide")

page = st.sidebar.radio("Choose View", ["Simulator", "Concepts"])

st.title("Segmented Paging Visualizer — Segments, Directories, TLB & Replacement")

# =============================================================================
# CONCEPTS PAGE - Educational Content
# =============================================================================

if page == "Concepts":
    st.header("How a reference is translated")
    st.markdown(
        """
        ### **1. Segment check**
        - The segment must exist (limit > 0), otherwise a **Segment Fault**.
        - Writes to a read-only segment raise a **Protection Violation**.

        ### **2. TLB probe**
        - The TLB caches (segment, directory, page) → frame.
        - A hit skips the table walk; only the offset is checked.

        ### **3. Table walk**
        - Page index must be below the segment limit (**Page Fault**).
        - Offset must be below the page size (**Offset Fault**).
        - The directory table grows on demand; each entry is a page table.
        - A page that is not present gets a frame on first touch. The access
          that faulted it in decides its protection from then on.

        ### **4. Frame replacement**
        - **FIFO** reclaims the frame allocated earliest.
        - **LRU** reclaims the frame touched least recently.
        - The evicted page is marked absent and its TLB entry dropped.

        ### **5. Physical address**
        - `base + frame × page_size + offset`
        """
    )
    st.stop()

# -----------------------------------------------------------------------------
# SIDEBAR - Simulation Settings
# -----------------------------------------------------------------------------

st.sidebar.header("Simulation Settings")

num_frames = st.sidebar.number_input("Physical frames", min_value=1, max_value=256, value=10)
tlb_size = st.sidebar.number_input("TLB entries (0 = off)", min_value=0, max_value=64, value=4)
page_size = st.sidebar.selectbox("Page size (bytes)", options=[256, 512, 1000, 1024, 4096], index=2)
policy = st.sidebar.selectbox("Replacement Policy", options=[ReplacementPolicy.LRU, ReplacementPolicy.FIFO])
residency = st.sidebar.slider("Initial residency", min_value=0.0, max_value=1.0, value=0.3, step=0.05)
seed = st.sidebar.number_input("Random seed", min_value=0, value=42)

config = SimulatorConfig(num_frames=int(num_frames), tlb_size=int(tlb_size), page_size=int(page_size),
                         policy=policy, residency=float(residency), seed=int(seed))

# -----------------------------------------------------------------------------
# SESSION STATE - Segment Table Persistence
# -----------------------------------------------------------------------------

# A new configuration means a new memory unit with the default segments
reset = st.sidebar.button("Reset Simulation")
if reset or st.session_state.get("config") != config:
    logger.info("Building memory unit:\n%s", config)
    table = config.build_table()
    apply_segments(table, load_initial_segments(None))
    st.session_state.table = table
    st.session_state.config = config

table: SegmentTable = st.session_state.table

st.sidebar.markdown("---")

# -----------------------------------------------------------------------------
# SIDEBAR - Segment Management
# -----------------------------------------------------------------------------

st.sidebar.header("Segments")

seg_id = st.sidebar.number_input("Segment ID", min_value=0, value=3)
seg_base = st.sidebar.number_input("Base address", min_value=0, value=60000)
seg_limit = st.sidebar.number_input("Limit (pages)", min_value=1, value=6)
seg_prot = st.sidebar.selectbox("Protection", options=list(Protection.ALL), index=1)

add_col, remove_col = st.sidebar.columns(2)
if add_col.button("Add"):
    table.add_segment(int(seg_id), int(seg_base), int(seg_limit), seg_prot)
    st.sidebar.success(f"Segment {seg_id} added")
if remove_col.button("Remove"):
    try:
        table.remove_segment(int(seg_id))
        st.sidebar.success(f"Segment {seg_id} removed")
    except MemoryFault as e:
        st.sidebar.error(str(e))

# =============================================================================
# MAIN CONTENT AREA - Two Column Layout
# =============================================================================

col1, col2 = st.columns([1, 2])

# -----------------------------------------------------------------------------
# LEFT COLUMN - Translation Controls and Event Log
# -----------------------------------------------------------------------------

with col1:
    st.subheader("Translate")
    t_seg = st.number_input("Segment", min_value=0, value=0)
    t_dir = st.number_input("Directory", min_value=0, value=0)
    t_page = st.number_input("Page", min_value=0, value=0)
    t_off = st.number_input("Offset", min_value=0, value=0)
    t_access = st.radio("Access", options=["Read", "Write"], horizontal=True)

    if st.button("Translate"):
        access = Protection.READ_ONLY if t_access == "Read" else Protection.READ_WRITE
        try:
            address = table.translate(int(t_seg), int(t_dir), int(t_page), int(t_off), access)
            st.success(f"Time {table.time}: physical address {address}")
        except MemoryFault as e:
            st.error(str(e))

    st.subheader("Batch / Random Workload")
    batch_input = st.text_area(
        "Requests (segment directory page offset RO|RW per line)",
        value="0 0 5 10 RO\n0 0 5 10 RO\n1 0 2 0 RW\n2 1 3 999 RW\n0 0 10 0 RO",
    )
    if st.button("Run Batch"):
        try:
            report = run_batch(table, parse_requests(batch_input.splitlines()))
            st.code(report.render())
        except ValueError as e:
            st.error(str(e))

    random_count = st.number_input("Random requests", min_value=1, max_value=10000, value=50)
    if st.button("Run Random"):
        report = run_batch(table, generate_random_requests(table.rng, int(random_count)))
        st.info(f"{report.translations} requests, fault rate {report.fault_rate:.2f}%")

    st.subheader("Event Log")
    for ev in list(table.event_log)[-20:][::-1]:
        st.write(ev)

# -----------------------------------------------------------------------------
# RIGHT COLUMN - Visualizations
# -----------------------------------------------------------------------------

with col2:
    # ----- Physical Frames Visualization -----
    st.subheader("Physical Frames")
    owners = table.frame_store.snapshot()

    text = [frame_label(i, owner) for i, owner in enumerate(owners)]
    colors = [get_color(owner[0] if owner is not None else None) for owner in owners]

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=list(range(len(owners))),
        y=[1] * len(owners),
        text=text,
        marker_color=colors,
        hovertext=text,
        hoverinfo='text'
    ))
    fig.update_layout(height=150, showlegend=False, yaxis=dict(showticklabels=False))
    st.plotly_chart(fig, use_container_width=True)

    st.caption(f"Eviction order ({table.frame_store.policy.upper()}, next victim first): "
               f"{table.frame_store.order()}")

    # ----- TLB Display -----
    st.subheader("TLB (LRU order)")
    tlb_rows = [{"segment": s, "directory": d, "page": p, "frame": f}
                for (s, d, p), f in table.tlb.entries()]
    if tlb_rows:
        st.table(tlb_rows)
    else:
        st.write("TLB empty")

    # ----- Memory Map Display -----
    st.subheader("Memory Map")
    dump = table.memory_map()
    if not dump:
        st.write("No segments defined")
    else:
        st.table([{k: seg[k] for k in ("segment", "base", "limit", "protection", "faults")}
                  for seg in dump])
        page_rows = [
            {"segment": seg["segment"], "directory": d["directory"], **p}
            for seg in dump for d in seg["directories"] for p in d["pages"]
        ]
        if page_rows:
            st.dataframe(page_rows, use_container_width=True)

    # ----- Statistics Display -----
    st.subheader("Statistics")
    stats = table.stats()

    m1, m2, m3, m4 = st.columns(4)
    m1.metric("Translations", stats["translations"])
    m2.metric("Avg Latency", f"{stats['average_latency']:.2f}")
    m3.metric("Utilization", f"{stats['utilization']:.1f}%")
    m4.metric("TLB Hit Rate", f"{stats['tlb_hit_rate']:.2%}")

    for sid in stats["suggestions"]:
        st.warning(f"Segment {sid}: more than 20% of translations fault here, consider raising its limit")

    # ----- Faults per Segment Chart -----
    fig2 = go.Figure()
    fig2.add_trace(go.Bar(
        x=[f"S{sid}" for sid in stats["segment_faults"]],
        y=list(stats["segment_faults"].values()),
        marker_color=[get_color(sid) for sid in stats["segment_faults"]],
    ))
    fig2.update_layout(height=300, title="Faults per Segment")
    st.plotly_chart(fig2, use_container_width=True)

    # ----- TLB Hits vs Misses Chart -----
    fig3 = go.Figure()
    fig3.add_trace(go.Bar(
        x=["TLB Hits", "TLB Misses", "Evictions"],
        y=[stats["tlb_hits"], stats["tlb_lookups"] - stats["tlb_hits"], stats["evictions"]]
    ))
    fig3.update_layout(height=300, title="TLB Hits vs Misses")
    st.plotly_chart(fig3, use_container_width=True)

# =============================================================================
# FOOTER - Usage Tips
# =============================================================================

st.markdown("---")
st.markdown(
    "**Usage tips**:\n"
    "- Translate the same reference twice to watch the TLB hit.\n"
    "- Set 2 frames with LRU, touch pages A, B, A then C: B is evicted. "
    "Switch to FIFO and A goes instead.\n"
    "- Remove a segment to release its frames and purge its TLB entries."
)
