#!/usr/bin/env python3
"""
cli/compress.py
Command-line wrapper using stylizer/quadtree_core.py

Usage examples:
  # stylize an image (writes the flat-color rendering to ./output)
  python cli/compress.py compress path/to/image.jpg --detail-threshold 13 --max-depth 8

  # show the quadrant outlines, stopping the drawing at depth 4
  python cli/compress.py compress path/to/image.jpg --depth-limit 4 --show-lines --out recon.png

  # animated GIF of the refinement, one frame per depth
  python cli/compress.py animate path/to/image.jpg --out refine.gif --duration 400
"""

import sys
import argparse
import math
from pathlib import Path

# Make sure stylizer package can be imported when running this script directly
this_dir = Path(__file__).resolve().parent
project_root = this_dir.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from stylizer.quadtree_core import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_DETAIL_THRESHOLD,
    build_quadtree,
    render_quadtree,
    validate_depth_limit,
    render_frames,
    count_nodes,
    count_leaves,
    psnr,
)
from stylizer.errors import QuadTreeError
from PIL import Image
import numpy as np

OUTPUT_DIR = project_root / "output"

def load_image(in_path: str) -> np.ndarray:
    img = Image.open(in_path).convert("RGB")
    return np.array(img)

def _default_out(in_path: str, suffix: str) -> Path:
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    return OUTPUT_DIR / f"{Path(in_path).stem}{suffix}"

def compress_image(in_path: str, max_depth: int, detail_threshold: float,
                   depth_limit: int = None, show_lines: bool = False, out_path: str = None):
    validate_depth_limit(depth_limit)
    arr = load_image(in_path)
    h, w = arr.shape[:2]
    print(f"[+] Input: {in_path}")
    print(f"[+] Size: {w}x{h}, max_depth={max_depth}, detail_threshold={detail_threshold}")

    qt = build_quadtree(arr, max_depth=max_depth, detail_threshold=detail_threshold)
    recon = render_quadtree(qt, depth_limit=depth_limit, draw_boundaries=show_lines)

    if out_path is None:
        out_path = _default_out(in_path, "_quadtree.png")
    Image.fromarray(recon).save(out_path, format="PNG")

    p = psnr(arr, recon)
    nodes = count_nodes(qt.root)
    leaves = count_leaves(qt.root)
    print(f"[+] Wrote: {out_path}")
    print(f"[+] PSNR: {'inf' if math.isinf(p) else f'{p:.2f}'} dB")
    print(f"[+] Nodes: {nodes}, leaves: {leaves}, depth reached: {qt.max_depth_reached}")
    return {"out": str(out_path), "psnr": p, "nodes": nodes, "leaves": leaves,
            "depth_reached": qt.max_depth_reached}

def animate_image(in_path: str, max_depth: int, detail_threshold: float,
                  show_lines: bool = False, duration: int = 500, out_path: str = None):
    arr = load_image(in_path)
    qt = build_quadtree(arr, max_depth=max_depth, detail_threshold=detail_threshold)
    frames = [Image.fromarray(f) for f in render_frames(qt, draw_boundaries=show_lines)]
    if out_path is None:
        out_path = _default_out(in_path, "_refine.gif")
    frames[0].save(out_path, format="GIF", save_all=True, append_images=frames[1:],
                   duration=duration, loop=0)
    print(f"[+] Wrote {len(frames)} frames to {out_path}")
    return {"out": str(out_path), "frames": len(frames)}

def _add_tree_args(p):
    p.add_argument("input", help="Input image path (PNG/JPG)")
    p.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH, help="max quadtree depth")
    p.add_argument("--detail-threshold", type=float, default=DEFAULT_DETAIL_THRESHOLD,
                   help="split regions whose detail is at least this (lower = finer tree)")
    p.add_argument("--show-lines", action="store_true", help="outline every drawn quadrant")

def build_parser():
    p = argparse.ArgumentParser(prog="compress.py", description="Quadtree image stylizer CLI")
    sub = p.add_subparsers(dest="cmd", required=True)

    c = sub.add_parser("compress", help="Build quadtree and write the flat-color rendering")
    _add_tree_args(c)
    c.add_argument("--depth-limit", type=int, default=None, help="render as if the tree stopped at this depth")
    c.add_argument("--out", help="Output PNG path (default -> ./output/<input>_quadtree.png)")

    a = sub.add_parser("animate", help="Write an animated GIF, one frame per depth")
    _add_tree_args(a)
    a.add_argument("--duration", type=int, default=500, help="frame duration in ms")
    a.add_argument("--out", help="Output GIF path (default -> ./output/<input>_refine.gif)")

    return p

def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        if args.cmd == "compress":
            compress_image(args.input, max_depth=args.max_depth, detail_threshold=args.detail_threshold,
                           depth_limit=args.depth_limit, show_lines=args.show_lines, out_path=args.out)
        elif args.cmd == "animate":
            animate_image(args.input, max_depth=args.max_depth, detail_threshold=args.detail_threshold,
                          show_lines=args.show_lines, duration=args.duration, out_path=args.out)
    except QuadTreeError as e:
        parser.error(str(e))
    except OSError as e:
        parser.error(f"Cannot read/write image: {e}")

if __name__ == "__main__":
    main()
