# stylizer/errors.py


class QuadTreeError(ValueError):
    """Base class for quadtree build/render input errors."""


class InvalidImageError(QuadTreeError):
    pass


class InvalidConfigurationError(QuadTreeError):
    pass
