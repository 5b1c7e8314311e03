# stylizer/quadtree_core.py
from dataclasses import dataclass, field
from typing import Optional, List, Tuple, Iterator, NamedTuple
import logging
import math
import numbers
import numpy as np

from stylizer.errors import QuadTreeError, InvalidImageError, InvalidConfigurationError
from stylizer.region_stats import region_stats

log = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 8
DEFAULT_DETAIL_THRESHOLD = 13.0
BOUNDARY_COLOR = (0, 0, 0)

class BoundingBox(NamedTuple):
    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    def slices(self) -> Tuple[slice, slice]:
        """Row/column slices selecting this box out of an HxWxC array."""
        return slice(self.y, self.y + self.height), slice(self.x, self.x + self.width)

    def is_degenerate(self) -> bool:
        return self.width < 2 or self.height < 2

@dataclass
class QuadTreeConfig:
    max_depth: int = DEFAULT_MAX_DEPTH
    detail_threshold: float = DEFAULT_DETAIL_THRESHOLD

    def validate(self) -> "QuadTreeConfig":
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, numbers.Integral):
            raise InvalidConfigurationError(f"max_depth must be an integer, got {self.max_depth!r}")
        if self.max_depth < 0:
            raise InvalidConfigurationError(f"max_depth must be >= 0, got {self.max_depth}")
        if isinstance(self.detail_threshold, bool) or not isinstance(self.detail_threshold, numbers.Real):
            raise InvalidConfigurationError(f"detail_threshold must be a number, got {self.detail_threshold!r}")
        if math.isnan(self.detail_threshold) or self.detail_threshold < 0:
            raise InvalidConfigurationError(f"detail_threshold must be >= 0, got {self.detail_threshold}")
        return self

def validate_image(img: np.ndarray) -> np.ndarray:
    if not isinstance(img, np.ndarray) or img.ndim != 3 or img.shape[2] != 3:
        raise InvalidImageError("img must be HxW x 3 RGB uint8")
    if img.dtype != np.uint8:
        raise InvalidImageError(f"img must be uint8, got {img.dtype}")
    if img.shape[0] == 0 or img.shape[1] == 0:
        raise InvalidImageError(f"img has zero area ({img.shape[1]}x{img.shape[0]})")
    return img

def validate_depth_limit(depth_limit: Optional[int]) -> Optional[int]:
    """None means no limit; otherwise a non-negative integer depth."""
    if depth_limit is None:
        return None
    if isinstance(depth_limit, bool) or not isinstance(depth_limit, numbers.Integral):
        raise InvalidConfigurationError(f"depth_limit must be an integer, got {depth_limit!r}")
    if depth_limit < 0:
        raise InvalidConfigurationError(f"depth_limit must be >= 0, got {depth_limit}")
    return depth_limit

def split_bbox(bbox: BoundingBox) -> List[BoundingBox]:
    """
    Four sub-boxes ordered top-left, top-right, bottom-left, bottom-right.
    Left/top halves get floor(dim/2), right/bottom halves get the rest,
    so odd sizes keep every pixel row and column.
    """
    x, y, w, h = bbox
    lw, th = w // 2, h // 2
    rw, bh = w - lw, h - th
    return [
        BoundingBox(x,      y,      lw, th),
        BoundingBox(x + lw, y,      rw, th),
        BoundingBox(x,      y + th, lw, bh),
        BoundingBox(x + lw, y + th, rw, bh),
    ]

# ---------------- tree nodes ----------------
@dataclass
class Quadrant:
    bbox: BoundingBox
    depth: int
    detail: float
    average_color: Tuple[int,int,int]
    is_leaf: bool = False
    children: List["Quadrant"] = field(default_factory=list)

    @classmethod
    def from_region(cls, img: np.ndarray, bbox: BoundingBox, depth: int) -> "Quadrant":
        rows, cols = bbox.slices()
        detail, color = region_stats(img[rows, cols])
        return cls(bbox=bbox, depth=depth, detail=detail, average_color=color)

    def split(self, img: np.ndarray) -> List["Quadrant"]:
        self.children = [Quadrant.from_region(img, b, self.depth + 1) for b in split_bbox(self.bbox)]
        return self.children

    def iter_nodes(self) -> Iterator["Quadrant"]:
        yield self
        for c in self.children:
            yield from c.iter_nodes()

class QuadTree:
    """
    Owns the root quadrant of one image. Built once; render as often as needed.
    No reference to the source image is kept after build().
    """

    def __init__(self, img: np.ndarray, config: Optional[QuadTreeConfig] = None):
        self.config = (config or QuadTreeConfig()).validate()
        validate_image(img)
        h, w = img.shape[:2]
        self.max_depth_reached = 0
        self.built = False
        self.root = Quadrant.from_region(img, BoundingBox(0, 0, w, h), 0)

    @property
    def width(self) -> int:
        return self.root.bbox.width

    @property
    def height(self) -> int:
        return self.root.bbox.height

    def _should_stop(self, quad: Quadrant) -> bool:
        return (quad.depth >= self.config.max_depth
                or quad.detail < self.config.detail_threshold
                or quad.bbox.is_degenerate())

    def build(self, img: np.ndarray) -> "QuadTree":
        """Resolve every node once. img must be the image the root was computed from."""
        if self.built:
            raise QuadTreeError("quadtree is already built")
        if validate_image(img).shape[:2] != (self.height, self.width):
            raise InvalidImageError(f"img is {img.shape[1]}x{img.shape[0]}, tree root is {self.width}x{self.height}")
        self._build(img, self.root)
        self.built = True
        return self

    def _build(self, img: np.ndarray, quad: Quadrant):
        if self._should_stop(quad):
            quad.is_leaf = True
            if quad.depth > self.max_depth_reached:
                self.max_depth_reached = quad.depth
            return
        for child in quad.split(img):
            self._build(img, child)

    def iter_nodes(self) -> Iterator[Quadrant]:
        return self.root.iter_nodes()

    def leaves(self) -> List[Quadrant]:
        return [q for q in self.iter_nodes() if q.is_leaf]

    def render(self, depth_limit: Optional[int] = None, draw_boundaries: bool = False) -> np.ndarray:
        return render_quadtree(self, depth_limit=depth_limit, draw_boundaries=draw_boundaries)

# ---------------- build ----------------
def build_quadtree(img: np.ndarray, max_depth: int = DEFAULT_MAX_DEPTH,
                   detail_threshold: float = DEFAULT_DETAIL_THRESHOLD) -> QuadTree:
    tree = QuadTree(img, QuadTreeConfig(max_depth=max_depth, detail_threshold=detail_threshold))
    tree.build(img)
    log.debug("built quadtree %dx%d: %d nodes, depth reached %d (max_depth=%d, threshold=%.2f)",
              tree.width, tree.height, count_nodes(tree.root), tree.max_depth_reached,
              tree.config.max_depth, tree.config.detail_threshold)
    return tree

# ---------------- render ----------------
def _draw_outline(canvas: np.ndarray, bbox: BoundingBox, color=BOUNDARY_COLOR):
    x, y, w, h = bbox
    canvas[y, x:x+w] = color
    canvas[y+h-1, x:x+w] = color
    canvas[y:y+h, x] = color
    canvas[y:y+h, x+w-1] = color

def _render_node(node: Quadrant, canvas: np.ndarray, depth_limit: Optional[int], draw_boundaries: bool):
    if node.is_leaf or not node.children or node.depth == depth_limit:
        rows, cols = node.bbox.slices()
        canvas[rows, cols] = node.average_color
        if draw_boundaries:
            _draw_outline(canvas, node.bbox)
        return
    for c in node.children:
        _render_node(c, canvas, depth_limit, draw_boundaries)

def render_quadtree(tree: QuadTree, depth_limit: Optional[int] = None, draw_boundaries: bool = False) -> np.ndarray:
    """
    Rasterize the tree into a fresh HxWx3 uint8 image (black background).
    Nodes at depth == depth_limit are drawn flat as if the tree stopped there;
    depth_limit=None draws every leaf.
    """
    validate_depth_limit(depth_limit)
    canvas = np.zeros((tree.height, tree.width, 3), dtype=np.uint8)
    _render_node(tree.root, canvas, depth_limit, draw_boundaries)
    return canvas

def render_frames(tree: QuadTree, draw_boundaries: bool = False) -> Iterator[np.ndarray]:
    """One rendering per depth limit 0..max_depth_reached (progressive refinement)."""
    for depth in range(tree.max_depth_reached + 1):
        yield render_quadtree(tree, depth_limit=depth, draw_boundaries=draw_boundaries)

# ---------------- stats ----------------
def count_nodes(node: Quadrant) -> int:
    if node.is_leaf: return 1
    return 1 + sum(count_nodes(c) for c in node.children)

def count_leaves(node: Quadrant) -> int:
    if node.is_leaf: return 1
    return sum(count_leaves(c) for c in node.children)

def psnr(orig: np.ndarray, recon: np.ndarray) -> float:
    mse = float(np.mean((orig.astype(np.float64) - recon.astype(np.float64))**2))
    if mse == 0.0:
        return float("inf")
    PIXEL_MAX = 255.0
    return 20.0 * math.log10(PIXEL_MAX / math.sqrt(mse))
