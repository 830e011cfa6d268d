"""
Record store experiments: bulk write vs record-by-record append

Runs repeated experiments over synthetic record stores and produces data for the report

Outputs (in --outdir):
  - metrics.csv     (raw row per run per configuration)
  - summary.csv     (grouped mean/stdev)
  - *.png           (charts)

How to run:
  python experiments.py --outdir results --runs 5
  python experiments.py --outdir results --runs 3 --exp1_records 200 --exp2_max_records 1600
  python experiments.py --outdir results --runs 5 --exp1_generators member,payment,credential

Notes:
  The content artifact stores one byte per bit, so packed_bytes (bits / 8, rounded up)
  is reported next to the real artifact size to show what the code table achieves.
"""

from __future__ import annotations

import argparse
import csv
import hashlib
import random
import statistics
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import matplotlib.pyplot as plt

from huffman import frequency_table
from record_store import RecordStore, format_record
from settings import StoreConfig
import similarity


# Utilities

def now_ns() -> int:
    return time.perf_counter_ns()

def ns_to_ms(ns: int) -> float:
    return ns / 1_000_000.0

def safe_mkdir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


# Synthetic record generators, each returns one "Key:value / Key:value" payload

FIRST_NAMES = ["ALICE", "BOB", "CAROL", "DAVE", "ERIN", "FRANK", "GRACE", "HEIDI", "IVAN", "JUDY"]
LAST_NAMES = ["SMITH", "JONES", "BROWN", "TAYLOR", "WILSON", "DAVIES", "EVANS", "THOMAS"]
CLASSES = ["Yoga", "Pilates", "Spinning", "Boxing", "Zumba", "CrossFit"]
PLANS = ["Monthly", "Quarterly", "Yearly"]

def gen_member(rng: random.Random) -> str:
    return (f"Name:{rng.choice(FIRST_NAMES)} / Surname:{rng.choice(LAST_NAMES)} / "
            f"Phone:{rng.randrange(5000000000, 5999999999)} / Age:{rng.randrange(16, 80)}")

def gen_subscription(rng: random.Random) -> str:
    return (f"Member:{rng.randrange(1, 500)} / Plan:{rng.choice(PLANS)} / "
            f"Start:{rng.randrange(1, 29):02d}.{rng.randrange(1, 13):02d}.2024")

def gen_class(rng: random.Random) -> str:
    return (f"Class:{rng.choice(CLASSES)} / Trainer:{rng.choice(FIRST_NAMES)} / "
            f"Day:{rng.randrange(1, 8)} / Hour:{rng.randrange(8, 22)}:00")

def gen_payment(rng: random.Random) -> str:
    return (f"Member:{rng.randrange(1, 500)} / Amount:{rng.randrange(10, 500)}.{rng.randrange(0, 100):02d} / "
            f"Method:{rng.choice(['Cash', 'Card', 'Transfer'])}")

def gen_credential(rng: random.Random) -> str:
    # three hex digests in one record, as the login workflow stores them
    digests = [hashlib.sha256(str(rng.random()).encode()).hexdigest() for _ in range(3)]
    return "/".join(digests)

GENERATOR_REGISTRY: Dict[str, Callable[[random.Random], str]] = {
    "member": gen_member,
    "subscription": gen_subscription,
    "class": gen_class,
    "payment": gen_payment,
    "credential": gen_credential,
}

def generate_dataset(name: str, records: int, seed: int) -> Tuple[str, List[str]]:
    """
    Helper: if a dataset name is not recognized, we fall back to member records
    so the run does not fail completely
    """
    rng = random.Random(seed)
    fn = GENERATOR_REGISTRY.get(name)
    if fn is None:
        return f"{name}_fallback_member", [gen_member(rng) for _ in range(records)]
    return name, [fn(rng) for _ in range(records)]


# Experiment runner

@dataclass
class MetricRow:
    exp_name: str
    dataset_name: str
    records: int
    run_id: int
    pipeline: str  # "bulk_write" or "append_each"
    text_chars: int
    unique_symbols: int

    build_ms: float
    read_ms: float
    edit_ms: float
    delete_ms: float
    check_ms: float
    total_ms: float

    blob_bytes: int
    tree_bytes: int
    packed_bytes: int
    compression_ratio: float

    duplicate_detected: int  # 1 or 0
    correctness_ok: int  # 1 or 0


def run_one(payloads: List[str], pipeline: str, root: Path) -> MetricRow:
    store = RecordStore(StoreConfig(root=root))
    name = "bench"
    expected = "".join(format_record(i, p) for i, p in enumerate(payloads, start=1))

    t0 = now_ns()
    if pipeline == "bulk_write":
        store.write(name, expected).unwrap()
    elif pipeline == "append_each":
        store.write(name, payloads[0], is_new=True).unwrap()
        for p in payloads[1:]:
            store.append(name, p).unwrap()
    else:
        raise ValueError("pipeline must be 'bulk_write' or 'append_each'")
    t1 = now_ns()
    build_ms = ns_to_ms(t1 - t0)

    # read back
    t2 = now_ns()
    text = store.read(name).unwrap()
    t3 = now_ns()
    read_ms = ns_to_ms(t3 - t2)
    correct = text == expected

    blob_bytes = store.config.content_path(name).stat().st_size
    tree_bytes = store.config.tree_path(name).stat().st_size

    # similarity check of an existing record, which must be flagged
    middle = len(payloads) // 2
    t4 = now_ns()
    verdict = similarity.check(format_record(middle + 1, payloads[middle]).rstrip("\n"), name, store=store).unwrap()
    t5 = now_ns()
    check_ms = ns_to_ms(t5 - t4)

    # edit then delete the middle record
    t6 = now_ns()
    store.edit(name, middle + 1, payloads[middle] + " / Edited:1").unwrap()
    t7 = now_ns()
    edit_ms = ns_to_ms(t7 - t6)

    t8 = now_ns()
    store.delete(name, middle + 1).unwrap()
    t9 = now_ns()
    delete_ms = ns_to_ms(t9 - t8)

    remaining = store.records(name).unwrap()
    correct = correct and len(remaining) == len(payloads) - 1
    correct = correct and all(line.startswith(f"{i}-)") for i, line in enumerate(remaining, start=1))

    packed = (blob_bytes + 7) // 8
    return MetricRow(
        exp_name="",
        dataset_name="",
        records=len(payloads),
        run_id=0,
        pipeline=pipeline,
        text_chars=len(expected),
        unique_symbols=len(frequency_table(expected)),
        build_ms=build_ms,
        read_ms=read_ms,
        edit_ms=edit_ms,
        delete_ms=delete_ms,
        check_ms=check_ms,
        total_ms=build_ms + read_ms + edit_ms + delete_ms + check_ms,
        blob_bytes=blob_bytes,
        tree_bytes=tree_bytes,
        packed_bytes=packed,
        compression_ratio=(packed + tree_bytes) / max(1, len(expected)),
        duplicate_detected=1 if verdict.matched else 0,
        correctness_ok=1 if correct else 0,
    )


def write_csv(path: Path, rows: List[MetricRow]) -> None:
    fields = list(MetricRow.__dataclass_fields__.keys())
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=fields)
        w.writeheader()
        for r in rows:
            w.writerow({k: getattr(r, k) for k in fields})


def mean_stdev(vals: List[float]) -> Tuple[float, float]:
    if len(vals) == 1:
        return vals[0], 0.0
    return statistics.mean(vals), statistics.stdev(vals)


def group_summary(rows: List[MetricRow], out_path: Path) -> None:
    """
    Group by exp_name, dataset_name, records, pipeline and compute mean/stdev
    """
    key_to: Dict[Tuple[str, str, int, str], List[MetricRow]] = {}
    for r in rows:
        key = (r.exp_name, r.dataset_name, r.records, r.pipeline)
        key_to.setdefault(key, []).append(r)

    timed = ["compression_ratio", "build_ms", "read_ms", "edit_ms", "delete_ms", "check_ms", "total_ms"]
    summary_fields = ["exp_name", "dataset_name", "records", "pipeline", "n_runs"]
    for field in timed:
        summary_fields += [f"{field}_mean", f"{field}_stdev"]
    summary_fields += ["duplicate_detected_rate", "correctness_ok_rate"]

    with out_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=summary_fields)
        w.writeheader()
        for key, items in sorted(key_to.items()):
            exp_name, dataset_name, records, pipeline = key
            row = {
                "exp_name": exp_name,
                "dataset_name": dataset_name,
                "records": records,
                "pipeline": pipeline,
                "n_runs": len(items),
            }
            for field in timed:
                m, s = mean_stdev([getattr(x, field) for x in items])
                row[f"{field}_mean"] = m
                row[f"{field}_stdev"] = s
            row["duplicate_detected_rate"] = sum(x.duplicate_detected for x in items) / len(items)
            row["correctness_ok_rate"] = sum(x.correctness_ok for x in items) / len(items)
            w.writerow(row)


# Plotting

PIPELINES = ("bulk_write", "append_each")

def plot_experiment_1(rows: List[MetricRow], outdir: Path) -> None:
    exp_rows = [r for r in rows if r.exp_name == "exp1_record_kind"]
    if not exp_rows:
        return

    datasets = sorted(set(r.dataset_name for r in exp_rows))

    def mean_for(dataset: str, pipeline: str, field: str) -> float:
        vals = [getattr(r, field) for r in exp_rows if r.dataset_name == dataset and r.pipeline == pipeline]
        return statistics.mean(vals) if vals else float("nan")

    x = list(range(len(datasets)))

    for field, label, fname in (
        ("compression_ratio", "(Packed Bits + Tree) / Text Chars", "exp1_compression_ratio.png"),
        ("build_ms", "Build Time (ms)", "exp1_build_time.png"),
        ("total_ms", "Total Time (ms) (build + read + check + edit + delete)", "exp1_total_time.png"),
    ):
        plt.figure()
        for p in PIPELINES:
            y = [mean_for(d, p, field) for d in datasets]
            plt.plot(x, y, marker="o", label=p)
        plt.xticks(x, datasets, rotation=20, ha="right")
        plt.ylabel(label)
        plt.title(f"Experiment 1: {label.split(' (')[0]} by Record Kind")
        plt.legend()
        plt.tight_layout()
        plt.savefig(outdir / fname, dpi=200)
        plt.close()


def plot_experiment_2(rows: List[MetricRow], outdir: Path) -> None:
    exp_rows = [r for r in rows if r.exp_name == "exp2_record_scaling"]
    if not exp_rows:
        return

    for dist in sorted(set(r.dataset_name for r in exp_rows)):
        dist_rows = [r for r in exp_rows if r.dataset_name == dist]
        sizes = sorted(set(r.records for r in dist_rows))

        def mean_size(size: int, pipeline: str, field: str) -> float:
            vals = [getattr(r, field) for r in dist_rows if r.records == size and r.pipeline == pipeline]
            return statistics.mean(vals) if vals else float("nan")

        plt.figure()
        for p in PIPELINES:
            y = [mean_size(s, p, "build_ms") for s in sizes]
            plt.plot(sizes, y, marker="o", label=p)
        plt.xlabel("Records")
        plt.ylabel("Build Time (ms)")
        plt.title(f"Experiment 2: Build Time vs Records ({dist})")
        plt.legend()
        plt.tight_layout()
        plt.savefig(outdir / f"exp2_build_time_{dist}.png", dpi=200)
        plt.close()

        plt.figure()
        y = [mean_size(s, "bulk_write", "check_ms") for s in sizes]
        plt.plot(sizes, y, marker="o")
        plt.xlabel("Records")
        plt.ylabel("Similarity Check Time (ms)")
        plt.title(f"Experiment 2: Similarity Check Cost vs Records ({dist})")
        plt.tight_layout()
        plt.savefig(outdir / f"exp2_check_time_{dist}.png", dpi=200)
        plt.close()


# Main

def parse_csv_list(s: str) -> List[str]:
    return [x.strip() for x in s.split(",") if x.strip()]

def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--outdir", type=str, default="results", help="Output directory for CSV and plots")
    ap.add_argument("--runs", type=int, default=5, help="Repetitions per configuration (>=3 recommended for timing)")
    ap.add_argument("--seed", type=int, default=123, help="Base random seed")

    # Experiment toggles
    ap.add_argument("--no_exp1", action="store_true", help="Disable experiment 1 (record kind)")
    ap.add_argument("--no_exp2", action="store_true", help="Disable experiment 2 (record count scaling)")

    # Experiment 1 controls
    ap.add_argument("--exp1_records", type=int, default=100, help="Experiment 1 fixed record count")
    ap.add_argument("--exp1_generators", type=str, default="member,subscription,class,payment,credential",
                    help="Comma-separated record generator names for experiment 1")

    # Experiment 2 controls
    ap.add_argument("--exp2_min_records", type=int, default=25, help="Experiment 2 min record count (doubling)")
    ap.add_argument("--exp2_max_records", type=int, default=400, help="Experiment 2 max record count (doubling)")
    ap.add_argument("--exp2_generators", type=str, default="member,payment",
                    help="Comma-separated record generator names for experiment 2")

    args = ap.parse_args()

    outdir = Path(args.outdir)
    safe_mkdir(outdir)

    rows: List[MetricRow] = []

    with tempfile.TemporaryDirectory(prefix="record-store-bench-") as scratch:
        scratch_root = Path(scratch)
        counter = 0

        def measure(exp_name: str, dataset_name: str, payloads: List[str], run_id: int) -> None:
            nonlocal counter
            for pipeline in PIPELINES:
                counter += 1
                row = run_one(payloads, pipeline, scratch_root / f"run{counter}")
                row.exp_name = exp_name
                row.dataset_name = dataset_name
                row.run_id = run_id
                rows.append(row)

        # Experiment 1: record kinds (fixed count)
        if not args.no_exp1:
            count = max(2, args.exp1_records)
            for gen_name in parse_csv_list(args.exp1_generators):
                for run_id in range(1, args.runs + 1):
                    dataset_name, payloads = generate_dataset(gen_name, count, args.seed + run_id)
                    measure("exp1_record_kind", dataset_name, payloads, run_id)

        # Experiment 2: record count scaling (powers of 2)
        if not args.no_exp2:
            sizes: List[int] = []
            s = max(2, args.exp2_min_records)
            while s <= args.exp2_max_records:
                sizes.append(s)
                s *= 2

            for gen_name in parse_csv_list(args.exp2_generators):
                for size in sizes:
                    for run_id in range(1, args.runs + 1):
                        dataset_name, payloads = generate_dataset(gen_name, size, args.seed + 10_000 + size + run_id)
                        measure("exp2_record_scaling", dataset_name, payloads, run_id)

    # Write raw and summary
    metrics_csv = outdir / "metrics.csv"
    summary_csv = outdir / "summary.csv"
    write_csv(metrics_csv, rows)
    group_summary(rows, summary_csv)

    # Plots
    plot_experiment_1(rows, outdir)
    plot_experiment_2(rows, outdir)

    ok_rate = sum(r.correctness_ok for r in rows) / max(1, len(rows))
    print(f"Wrote {len(rows)} rows to {metrics_csv}")
    print(f"Wrote grouped summary to {summary_csv}")
    print(f"Correctness OK rate: {ok_rate:.3f}")
    return 0 if ok_rate == 1.0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
