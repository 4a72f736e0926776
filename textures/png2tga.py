#!/usr/bin/env python3
# png2tga.py - convert a PNG (or every PNG in a folder) to 32-bit TGA (RGBA).
#
# Usage:
#   python png2tga.py <input.png | folder> [output.tga] [--yes] [--no-rle]
#
# Folder mode is not recursive and always writes <name>.tga next to each PNG;
# the optional output argument only applies to single files.

from __future__ import annotations

import argparse
import enum
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from png2tga_codec import ConversionError, ImageCodec, PathLike, PillowCodec

PNG_SUFFIX = ".png"
TGA_SUFFIX = ".tga"
BAR_WIDTH = 40

Reader = Callable[[str], str]
Confirm = Callable[..., bool]


class InputNotFound(ConversionError):
    def __init__(self, path: PathLike):
        super().__init__(path, "input file does not exist")


class JobOutcome(enum.Enum):
    SKIPPED = "skipped"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


@dataclass
class ConversionJob:
    input_path: Path
    output_path: Path


@dataclass
class BatchState:
    total: int
    completed: int = 0

    def advance(self) -> None:
        if self.completed >= self.total:
            raise RuntimeError(f"Batch already finished ({self.completed}/{self.total}).")
        self.completed += 1


@dataclass
class BatchResult:
    outcomes: Dict[Path, JobOutcome] = field(default_factory=dict)

    def count(self, outcome: JobOutcome) -> int:
        return sum(1 for o in self.outcomes.values() if o is outcome)

    @property
    def converted(self) -> int:
        return self.count(JobOutcome.SUCCEEDED)


# ============================== JOB RESOLUTION ==============================

def derive_output_path(input_path: PathLike) -> Path:
    """``foo.png`` / ``foo.PNG`` -> ``foo.tga``."""
    return Path(input_path).with_suffix(TGA_SUFFIX)


def find_png_files(folder: Path) -> List[Path]:
    """Immediate PNG files in ``folder``, in directory order (not sorted)."""
    return [
        p for p in folder.iterdir()
        if p.suffix.lower() == PNG_SUFFIX and p.is_file()
    ]


def resolve_jobs(target: PathLike, output: Optional[PathLike] = None) -> List[ConversionJob]:
    """
    Turns the CLI target into conversion jobs.

    A folder yields one job per PNG inside it (``output`` is ignored); a file
    yields a single job, honouring ``output`` when given. Raises
    :class:`InputNotFound` when the target does not exist.
    """
    target = Path(target)

    if target.is_dir():
        return [ConversionJob(png, derive_output_path(png)) for png in find_png_files(target)]

    if not target.exists():
        raise InputNotFound(target)

    out = Path(output) if output else derive_output_path(target)
    return [ConversionJob(target, out)]


# ============================== OVERWRITE GUARD ==============================

def confirm_overwrite(path: Path, prefix: str = "", reader: Reader = input) -> bool:
    """Ask before replacing ``path``. Only ``y`` / ``Y`` counts as yes."""
    try:
        answer = reader(f"{prefix}Overwrite existing {path}? (y/n): ")
    except EOFError:
        return False
    answer = answer.strip()
    return answer[:1] in ("y", "Y")


def always_overwrite(path: Path, prefix: str = "") -> bool:
    return True


# ============================== CONVERSION ==============================

def convert_file(codec: ImageCodec, job: ConversionJob) -> bool:
    try:
        buffer = codec.decode(job.input_path)
    except ConversionError as e:
        print(f"Error loading {job.input_path}: {e.reason}", file=sys.stderr)
        return False

    try:
        codec.encode(job.output_path, buffer)
    except ConversionError as e:
        print(f"Error writing {job.output_path}: {e.reason}", file=sys.stderr)
        return False

    return True


def render_progress(current: int, total: int, width: int = BAR_WIDTH) -> str:
    progress = current / total if total else 1.0
    pos = int(width * progress)
    cells = "".join("=" if i < pos else (">" if i == pos else " ") for i in range(width))
    return f"\r[{cells}] {int(progress * 100)}%"


def print_progress(state: BatchState) -> None:
    sys.stdout.write(render_progress(state.completed, state.total))
    sys.stdout.flush()


def run_batch(jobs: List[ConversionJob], codec: ImageCodec, confirm: Confirm = confirm_overwrite) -> BatchResult:
    """
    Converts every job in order, redrawing the progress bar after each one.
    Failures are reported per file and never stop the batch.
    """
    state = BatchState(total=len(jobs))
    result = BatchResult()

    print(f"Found {state.total} PNG files in directory. Converting . . .")

    for job in jobs:
        if job.output_path.exists() and not confirm(job.output_path, prefix="\n"):
            outcome = JobOutcome.SKIPPED
        elif convert_file(codec, job):
            outcome = JobOutcome.SUCCEEDED
        else:
            outcome = JobOutcome.FAILED

        result.outcomes[job.input_path] = outcome
        state.advance()
        print_progress(state)

    print("\nDone.")
    return result


def convert_single(job: ConversionJob, codec: ImageCodec, confirm: Confirm = confirm_overwrite) -> int:
    if job.output_path.exists() and not confirm(job.output_path):
        print("Aborted by user.")
        return 0

    if not convert_file(codec, job):
        return 1

    print(f"Converted {job.input_path} to {job.output_path}")
    return 0


# ============================== CLI ==============================

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="png2tga",
        description="Convert a PNG file, or every PNG in a folder, to 32-bit TGA.",
    )
    ap.add_argument("input", nargs="?", help="PNG file or folder of PNG files")
    ap.add_argument("output", nargs="?", help="Output .tga path (single file only)")
    ap.add_argument("-y", "--yes", action="store_true", help="Overwrite existing .tga files without asking")
    ap.add_argument("--no-rle", action="store_true", help="Write uncompressed TGA instead of RLE")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    if args.input is None:
        ap.print_usage()
        return 1

    codec = PillowCodec(rle=not args.no_rle)
    confirm = always_overwrite if args.yes else confirm_overwrite
    target = Path(args.input)

    try:
        jobs = resolve_jobs(target, args.output)
    except InputNotFound as e:
        print(f"Input file does not exist: {e.path}", file=sys.stderr)
        return 1

    if target.is_dir():
        if not jobs:
            print(f"No PNG files found in directory: {target}", file=sys.stderr)
            return 0
        run_batch(jobs, codec, confirm)
        return 0

    return convert_single(jobs[0], codec, confirm)


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        sys.exit(1)


if __name__ == "__main__":
    run()
