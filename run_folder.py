from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

import mondrian


logger = logging.getLogger(__name__)


def output_path_for(src: Path, in_dir: Path, out_dir: Path, ext: str | None) -> Path:
    rel = src.relative_to(in_dir)
    if ext:
        rel = rel.with_suffix(ext if ext.startswith(".") else "." + ext)
    return out_dir / rel


def main(argv: Sequence[str] | None = None) -> int:
    ap = argparse.ArgumentParser("Apply the Mondrian filter to every image in a folder")
    ap.add_argument("--input", type=str, required=True, help="Folder with source images")
    ap.add_argument("--output", type=str, default="mondrian_out", help="Folder for filtered images")
    ap.add_argument("--recursive", action="store_true", help="Scan input folder recursively")
    ap.add_argument("--ext", type=str, default=None, help="Output extension (e.g. .png). Defaults to the source extension.")
    ap.add_argument("--seed", type=int, default=None, help="Random seed shared by the whole run")
    ap.add_argument("--verbose", action="store_true", help="Debug logging to stderr")
    args = ap.parse_args(argv)
    mondrian.setup_logging(args.verbose)

    in_dir = Path(args.input)
    files = mondrian.iter_image_files(in_dir, recursive=args.recursive)
    if not files:
        raise FileNotFoundError(f"No images found in: {in_dir}")

    rng, seed = mondrian.make_rng(args.seed)
    logger.info("seed: %d; %d files", seed, len(files))

    out_dir = Path(args.output)
    saved = 0
    for src in files:
        dst = output_path_for(src, in_dir, out_dir, args.ext)
        fmt = mondrian.format_for_path(dst)
        try:
            data = mondrian.filter_bytes(src.read_bytes(), rng, fmt=fmt)
        except mondrian.DecodeError as e:
            logger.warning("skipping %s: %s", src, e)
            continue
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst.write_bytes(data)
        saved += 1
        logger.debug("wrote %s", dst)

    print(f"Saved: {saved}/{len(files)} images to {out_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
