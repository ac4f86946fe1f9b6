# cli.py

import argparse
import logging
import random
import sys

from engine import MemoryFault
from utils import format_memory_map, format_stats
from workload import (SimulatorConfig, apply_segments, generate_random_requests,
                      load_initial_segments, parse_protection, read_requests,
                      run_batch, write_report)

logger = logging.getLogger(__name__)

COMMANDS = ("add <id> <base> <limit> <RO|RW>, remove <id>, "
            "translate <seg> <dir> <page> <offset> <RO|RW>, random <num>, stats, map, quit")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Segmented, paged address translation simulator"
    )
    parser.add_argument("--frames", type=int, default=10, help="Physical frames (default: %(default)s)")
    parser.add_argument("--tlb", type=int, default=4, help="TLB entries, 0 disables it (default: %(default)s)")
    parser.add_argument("--pagesize", type=int, default=1000, help="Page size in bytes (default: %(default)s)")
    parser.add_argument("--replace", choices=("lru", "fifo"), default="lru",
                        help="Frame replacement policy (default: %(default)s)")
    parser.add_argument("--residency", type=float, default=0.3,
                        help="Chance a page starts resident (default: %(default)s)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible run")
    parser.add_argument("--init", default="init_config.txt",
                        help="Initial segment file (default: %(default)s)")
    parser.add_argument("--batch", default=None, help="Replay a file of translation requests")
    parser.add_argument("--random", type=int, default=None, metavar="N",
                        help="Run N random translation requests")
    parser.add_argument("--log", default=None,
                        help="Where batch/random results are written "
                             "(default: batch_results.txt or random_results.txt)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def run_command(table, line, out=sys.stdout, rng=None, random_log="random_results.txt") -> bool:
    """
    Execute one interactive command against ``table``.

    Returns:
        bool: False once the user asks to quit
    """
    parts = line.split()
    if not parts:
        return True
    command, args = parts[0].lower(), parts[1:]
    try:
        if command == "quit":
            return False
        if command == "add":
            seg_id, base, limit = (int(a) for a in args[:3])
            table.add_segment(seg_id, base, limit, parse_protection(args[3]))
            print(f"Segment {seg_id} added", file=out)
        elif command == "remove":
            table.remove_segment(int(args[0]))
            print(f"Segment {args[0]} removed", file=out)
        elif command == "translate":
            seg, directory, page, offset = (int(a) for a in args[:4])
            address = table.translate(seg, directory, page, offset, parse_protection(args[4]))
            print(f"Time {table.time}: Physical Address: {address}", file=out)
        elif command == "random":
            report = run_batch(table, generate_random_requests(rng or table.rng, int(args[0])))
            print(report.render(), end="", file=out)
            write_report(report, random_log)
            print(f"Results logged to {random_log}", file=out)
        elif command == "stats":
            print(format_stats(table.stats()), file=out)
        elif command == "map":
            print(format_memory_map(table.memory_map()), file=out)
        else:
            print(f"Unknown command: {command}. Commands: {COMMANDS}", file=out)
    except MemoryFault as exc:
        print(f"Error: {exc}", file=out)
    except (ValueError, IndexError):
        print(f"Error: bad arguments for {command}. Commands: {COMMANDS}", file=out)
    except OSError as exc:
        print(f"Error: {exc}", file=out)
    return True


def prompt_settings(args, read=input):
    """Ask for the memory configuration, keeping the default on an empty answer."""
    for attr, question, convert in [
        ("frames", "Enter Physical Memory Size (frames)", int),
        ("tlb", "Enter TLB Size", int),
        ("pagesize", "Enter Page Size", int),
        ("replace", "Enter Replacement Policy (lru/fifo)", str.lower),
    ]:
        answer = read(f"{question} [{getattr(args, attr)}]: ").strip()
        if answer:
            setattr(args, attr, convert(answer))
    return args


def main(argv=None):
    raw_args = sys.argv[1:] if argv is None else argv
    args = parse_args(raw_args)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if not raw_args and sys.stdin.isatty():
            prompt_settings(args)
        config = SimulatorConfig(num_frames=args.frames, tlb_size=args.tlb, page_size=args.pagesize,
                                 policy=args.replace, residency=args.residency, seed=args.seed)
        table = config.build_table()
        apply_segments(table, load_initial_segments(args.init))
    except (ValueError, OSError, EOFError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(2)

    if args.batch is not None or args.random is not None:
        if args.batch is not None:
            try:
                requests = read_requests(args.batch)
            except (ValueError, OSError) as exc:
                print(f"error: {args.batch}: {exc}", file=sys.stderr)
                sys.exit(2)
            log_path = args.log or "batch_results.txt"
        else:
            requests = generate_random_requests(random.Random(args.seed), args.random)
            log_path = args.log or "random_results.txt"
        report = run_batch(table, requests)
        print(report.render(), end="")
        write_report(report, log_path)
        print(f"Results logged to {log_path}")
        print(format_stats(table.stats()))
        return

    print(format_memory_map(table.memory_map()))
    print(f"\nCommands: {COMMANDS}")
    while True:
        try:
            line = input(">> ")
        except EOFError:
            break
        if not run_command(table, line):
            break


if __name__ == '__main__':
    main()
