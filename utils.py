# utils.py

FREE_COLOR = "lightgray"


def get_color(segment_id):
    """Return a stable pastel color for a segment, grey for free frames."""
    if segment_id is None:
        return FREE_COLOR
    return f"hsl({(segment_id * 67) % 360}, 70%, 75%)"


def frame_label(frame, owner):
    if owner is None:
        return f"F{frame}: Free"
    seg_id, dir_id, page_id = owner
    return f"F{frame}: S{seg_id}/D{dir_id}/P{page_id}"


def format_stats(stats):
    lines = ["--- System Statistics ---", "Page Fault Statistics:"]
    for seg_id, faults in stats["segment_faults"].items():
        lines.append(f"Segment {seg_id}: {faults} faults")
    for seg_id in stats["suggestions"]:
        lines.append(f"Suggestion: Increase limit for Segment {seg_id} to reduce faults")
    lines.append(f"Translations: {stats['translations']} ({stats['faults']} faults, "
                 f"{stats['fault_rate']:.2%})")
    lines.append(f"Average Translation Latency: {stats['average_latency']:.2f}")
    lines.append(f"Physical Memory Utilization: {stats['utilization']:.2f}%")
    lines.append("TLB Contents (LRU Order):")
    for (seg_id, dir_id, page_id), frame in stats["tlb_entries"]:
        lines.append(f" {seg_id}:{dir_id}:{page_id} -> Frame {frame}")
    lines.append(f"TLB Hit Rate: {stats['tlb_hit_rate']:.2%}")
    lines.append("-------------------------")
    return "\n".join(lines)


def format_memory_map(dump):
    lines = ["--- Memory Map ---"]
    for seg in dump:
        lines.append(f"Segment {seg['segment']}: Base={seg['base']}, Limit={seg['limit']}, "
                     f"Protection={seg['protection']}, Faults={seg['faults']}")
        for directory in seg["directories"]:
            lines.append(f" Directory {directory['directory']}:")
            for p in directory["pages"]:
                lines.append(f"  Page {p['page']}: Frame={p['frame']}, "
                             f"Protection={p['protection']}, LastAccess={p['last_access']}")
    return "\n".join(lines)
