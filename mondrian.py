from __future__ import annotations

import argparse
import io
import logging
import random
import struct
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError


logger = logging.getLogger(__name__)

SUPPORTED_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tif", ".tiff", ".ff"}

MIN_SPLIT_PADDING = 100
SPLIT_COUNT_BASE = 15
SPLIT_COUNT_SPAN = 30
TILE_INSET = 2
BLUR_RADIUS = 2
BLUR_SCALE = 4
BORDER_COLOR = (0, 0, 0)

FARBFELD_MAGIC = b"farbfeld"
FARBFELD = "farbfeld"

RED = "red"
BLUE = "blue"
YELLOW = "yellow"
WHITE = "white"
COPY = "copy"

FILL_COLORS: dict[str, Tuple[int, int, int]] = {
    RED: (255, 0, 0),
    BLUE: (0, 0, 255),
    YELLOW: (255, 255, 0),
    WHITE: (255, 255, 255),
}
SOLID_FILLS = (RED, BLUE, YELLOW, WHITE)


class DecodeError(ValueError):
    """Input bytes are not a readable image."""


class InsufficientRoom(ValueError):
    """Rectangle is too small to split with the requested padding."""


@dataclass(frozen=True)
class Rect:
    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def w(self) -> int:
        return self.x1 - self.x0

    @property
    def h(self) -> int:
        return self.y1 - self.y0

    @property
    def area(self) -> int:
        return max(0, self.w) * max(0, self.h)

    @property
    def empty(self) -> bool:
        return self.x0 >= self.x1 or self.y0 >= self.y1

    @property
    def box(self) -> Tuple[int, int, int, int]:
        return (self.x0, self.y0, self.x1, self.y1)


EMPTY_RECT = Rect(0, 0, 0, 0)


@dataclass(frozen=True)
class Tile:
    rect: Rect
    fill: str


# ---------------------------------------------------------------------------
# Rectangle geometry
# ---------------------------------------------------------------------------

def rect_intersection(a: Rect, b: Rect) -> Rect:
    x0 = max(a.x0, b.x0)
    y0 = max(a.y0, b.y0)
    x1 = min(a.x1, b.x1)
    y1 = min(a.y1, b.y1)
    if x1 <= x0 or y1 <= y0:
        return EMPTY_RECT
    return Rect(x0, y0, x1, y1)


def rect_overlaps(a: Rect, b: Rect) -> bool:
    # shared edges and identical rects do not count
    if a == b or a.empty or b.empty:
        return False
    return not (
        a.x1 <= b.x0
        or b.x1 <= a.x0
        or a.y1 <= b.y0
        or b.y1 <= a.y0
    )


def rect_contains(outer: Rect, inner: Rect) -> bool:
    if inner.empty:
        return True
    return (
        outer.x0 <= inner.x0
        and outer.y0 <= inner.y0
        and inner.x1 <= outer.x1
        and inner.y1 <= outer.y1
    )


def rect_inset(r: Rect, n: int) -> Rect:
    """Shrink ``r`` by ``n`` on every side.

    A side shorter than ``2 * n`` collapses to its midpoint, so the result
    is an empty rect rather than an inverted one.
    """
    if r.w < 2 * n:
        x0 = x1 = (r.x0 + r.x1) // 2
    else:
        x0, x1 = r.x0 + n, r.x1 - n
    if r.h < 2 * n:
        y0 = y1 = (r.y0 + r.y1) // 2
    else:
        y0, y1 = r.y0 + n, r.y1 - n
    return Rect(x0, y0, x1, y1)


# ---------------------------------------------------------------------------
# Partitioning
# ---------------------------------------------------------------------------

def split_rect(r: Rect, padding: int, rng: random.Random) -> Tuple[Rect, Rect]:
    vertical = rng.randrange(2) == 0
    if vertical:
        lo, hi = r.x0 + padding, r.x1 - padding
    else:
        lo, hi = r.y0 + padding, r.y1 - padding
    # only the drawn axis is tried
    if hi - lo <= 0:
        axis = "x" if vertical else "y"
        raise InsufficientRoom(f"not enough room to split {r.box} along {axis} with padding {padding}")

    offset = rng.randrange(lo, hi)
    if vertical:
        return Rect(r.x0, r.y0, offset, r.y1), Rect(offset, r.y0, r.x1, r.y1)
    return Rect(r.x0, r.y0, r.x1, offset), Rect(r.x0, offset, r.x1, r.y1)


def half_rects(r: Rect) -> Tuple[Rect, Rect]:
    # the canvas always starts at the origin, so x1 // 2 is its midpoint
    mid = r.x1 // 2
    return Rect(r.x0, r.y0, mid, r.y1), Rect(mid, r.y0, r.x1, r.y1)


def build_candidates(
    seed_rect: Rect,
    rng: random.Random,
    padding: int = MIN_SPLIT_PADDING,
    split_base: int = SPLIT_COUNT_BASE,
    split_span: int = SPLIT_COUNT_SPAN,
) -> List[Rect]:
    left, right = half_rects(seed_rect)
    rects: List[Rect] = [seed_rect]

    num_splits = split_base + rng.randrange(split_span)
    done = 0
    for _ in range(num_splits):
        r = rects[rng.randrange(len(rects))]
        try:
            a, b = split_rect(r, padding, rng)
        except InsufficientRoom:
            continue
        rects.append(a)
        rects.append(b)
        done += 1

    rects.append(left)
    rects.append(right)
    logger.debug("splits: %d/%d succeeded; %d raw candidates", done, num_splits, len(rects))

    # dict keeps first-seen order
    return list(dict.fromkeys(r for r in rects if not r.empty))


def add_intersections(candidates: Sequence[Rect]) -> List[Rect]:
    rects = [r for r in candidates if not r.empty]
    seen: set[Rect] = set()

    n = len(rects)
    for i in range(n):
        a = rects[i]
        for j in range(i + 1, n):
            inter = rect_intersection(a, rects[j])
            if not inter.empty and inter not in seen:
                seen.add(inter)
                rects.append(inter)

    return rects


def drop_overlapping(rects: Sequence[Rect]) -> List[Rect]:
    out: List[Rect] = []
    for r in rects:
        tangled = any(
            rect_overlaps(r, s) and r != s and not rect_contains(s, r)
            for s in rects
        )
        if not tangled:
            out.append(r)
    return out


def resolve_overlaps(candidates: Sequence[Rect]) -> List[Rect]:
    pool = add_intersections(candidates)
    out = drop_overlapping(pool)
    logger.debug("resolve: %d candidates -> %d pooled -> %d tiles", len(candidates), len(pool), len(out))
    return out


# ---------------------------------------------------------------------------
# Compositing
# ---------------------------------------------------------------------------

def choose_fill(rng: random.Random) -> str:
    if rng.randrange(4) != 0:
        return COPY if rng.randrange(4) == 0 else WHITE
    return rng.choice(SOLID_FILLS)


def assign_tiles(rects: Iterable[Rect], rng: random.Random) -> List[Tile]:
    return [Tile(rect=r, fill=choose_fill(rng)) for r in rects]


def plan_tiles(size: Tuple[int, int], rng: random.Random) -> List[Tile]:
    w, h = size
    candidates = build_candidates(Rect(0, 0, w, h), rng)
    return assign_tiles(resolve_overlaps(candidates), rng)


def paint_tiles(
    tiles: Sequence[Tile],
    source: Image.Image,
    size: Tuple[int, int] | None = None,
    border: Tuple[int, int, int] = BORDER_COLOR,
    inset: int = TILE_INSET,
) -> Image.Image:
    if size is None:
        size = source.size
    out = Image.new("RGB", size, color=border)
    src = source if source.mode == "RGB" else source.convert("RGB")

    for t in tiles:
        r = rect_inset(t.rect, inset)
        if r.empty:
            continue
        if t.fill == COPY:
            out.paste(src.crop(r.box), (r.x0, r.y0))
        else:
            out.paste(FILL_COLORS[t.fill], r.box)

    return out


def mondrian(
    source: Image.Image,
    rng: random.Random,
    stats: dict[str, float] | None = None,
) -> Image.Image:
    tiles = plan_tiles(source.size, rng)

    if stats is not None:
        stats["tiles"] = float(len(tiles))
        for name in (COPY,) + SOLID_FILLS:
            stats[name] = float(sum(1 for t in tiles if t.fill == name))
        areas = [r.area for r in {t.rect for t in tiles}]
        stats["coverage"] = (sum(areas) / float(source.width * source.height)) if areas else 0.0

    return paint_tiles(tiles, source)


# ---------------------------------------------------------------------------
# Image IO
# ---------------------------------------------------------------------------

def safe_resize(
    img: Image.Image,
    size: Tuple[int, int],
    resample: Image.Resampling = Image.Resampling.LANCZOS,
) -> Image.Image:
    w, h = size
    if w <= 0 or h <= 0:
        raise ValueError("resize size must be positive")
    return img.resize((w, h), resample=resample)


def prepare_source(img: Image.Image) -> Image.Image:
    if img.mode != "RGB":
        img = img.convert("RGB")
    w, h = img.size
    small = safe_resize(
        img,
        (max(1, w // BLUR_SCALE), max(1, h // BLUR_SCALE)),
        resample=Image.Resampling.NEAREST,
    )
    small = small.filter(ImageFilter.GaussianBlur(BLUR_RADIUS))
    return safe_resize(small, (w, h), resample=Image.Resampling.BILINEAR)


def filter_image(
    img: Image.Image,
    rng: random.Random,
    stats: dict[str, float] | None = None,
) -> Image.Image:
    return mondrian(prepare_source(img), rng, stats=stats)


def decode_farbfeld(data: bytes) -> Image.Image:
    if len(data) < 16 or data[:8] != FARBFELD_MAGIC:
        raise DecodeError("not a farbfeld stream")
    w, h = struct.unpack(">II", data[8:16])
    if w <= 0 or h <= 0:
        raise DecodeError(f"farbfeld: invalid size {w}x{h}")
    expected = w * h * 8
    # bytes past the pixel data are ignored
    payload = data[16:16 + expected]
    if len(payload) != expected:
        raise DecodeError(f"farbfeld: truncated pixel data ({len(payload)} of {expected} bytes)")
    # 16-bit big-endian channels; keep the high byte
    return Image.frombytes("RGBA", (w, h), bytes(payload[0::2]))


def encode_farbfeld(img: Image.Image) -> bytes:
    raw = img.convert("RGBA").tobytes()
    wide = bytearray(len(raw) * 2)
    # v * 257 spreads 8-bit values over the full 16-bit range
    wide[0::2] = raw
    wide[1::2] = raw
    return FARBFELD_MAGIC + struct.pack(">II", img.width, img.height) + bytes(wide)


def decode_image(data: bytes) -> Tuple[Image.Image, str]:
    if data[:8] == FARBFELD_MAGIC:
        return decode_farbfeld(data), FARBFELD

    try:
        img = Image.open(io.BytesIO(data))
        fmt = img.format or "PNG"
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, EOFError, SyntaxError, ValueError) as e:
        raise DecodeError(f"cannot decode image: {e}") from e

    img = ImageOps.exif_transpose(img)
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGB")
    return img, fmt


def encode_image(img: Image.Image, fmt: str) -> bytes:
    if fmt.lower() == FARBFELD:
        return encode_farbfeld(img)

    buf = io.BytesIO()
    fmt = fmt.upper()
    if fmt == "JPEG":
        img.convert("RGB").save(buf, format=fmt, quality=92, subsampling=1, optimize=True)
    else:
        img.save(buf, format=fmt)
    return buf.getvalue()


def format_for_path(path: Path) -> str:
    ext = path.suffix.lower()
    if ext == ".ff":
        return FARBFELD
    fmt = Image.registered_extensions().get(ext)
    if fmt is None:
        raise ValueError(f"unsupported output extension: {ext or path.name}")
    return fmt


def filter_bytes(
    data: bytes,
    rng: random.Random,
    fmt: str | None = None,
    stats: dict[str, float] | None = None,
) -> bytes:
    img, in_fmt = decode_image(data)
    logger.info("decoded %s image %dx%d", in_fmt, img.width, img.height)
    out = filter_image(img, rng, stats=stats)
    return encode_image(out, fmt or in_fmt)


def iter_image_files(folder: Path, recursive: bool) -> List[Path]:
    if not folder.exists() or not folder.is_dir():
        raise FileNotFoundError(f"input folder not found: {folder}")

    files: List[Path] = []
    if recursive:
        walker: Iterable[Path] = folder.rglob("*")
    else:
        walker = folder.glob("*")

    for p in walker:
        if p.is_file() and p.suffix.lower() in SUPPORTED_EXTS:
            files.append(p)

    return sorted(files)


def make_rng(seed: int | None) -> Tuple[random.Random, int]:
    if seed is None:
        seed = time.time_ns()
    return random.Random(seed), seed


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Cover an image with a random Mondrian-style grid of colored and blurred tiles."
    )
    parser.add_argument(
        "--input",
        type=str,
        default="-",
        help="Input image path, or - to read from stdin (farbfeld or any format Pillow reads).",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="-",
        help="Output image path, or - to write to stdout.",
    )
    parser.add_argument(
        "--format",
        type=str,
        default=None,
        help="Output format (farbfeld, PNG, JPEG...). Defaults to the output extension or the input format.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed (for reproducible results). Defaults to the current time.",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print tile statistics",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging to stderr")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    rng, seed = make_rng(args.seed)
    logger.info("seed: %d", seed)

    to_stdout = args.output == "-"
    fmt = args.format
    if fmt is None and not to_stdout:
        fmt = format_for_path(Path(args.output))

    if args.input == "-":
        data = sys.stdin.buffer.read()
    else:
        data = Path(args.input).read_bytes()

    stat_map: dict[str, float] | None = {} if args.stats else None
    try:
        out = filter_bytes(data, rng, fmt=fmt, stats=stat_map)
    except DecodeError as e:
        raise SystemExit(f"cannot read input: {e}")

    if to_stdout:
        sys.stdout.buffer.write(out)
        sys.stdout.buffer.flush()
    else:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(out)

    if stat_map is not None:
        report = sys.stderr if to_stdout else sys.stdout
        fills = "; ".join(f"{name}={int(stat_map[name])}" for name in (COPY,) + SOLID_FILLS)
        print(f"tiles: n={int(stat_map['tiles'])}; {fills}", file=report)
        print(f"coverage: {stat_map['coverage'] * 100.0:.2f}%; seed={seed}", file=report)

    if not to_stdout:
        print(f"Saved: {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
