"""ORB feature extraction and binary descriptor matching on NumPy images."""

__version__ = "0.1.0"

__all__ = [
    "bow",
    "distance",
    "extractor",
    "fast",
    "geometry",
    "histogram",
    "imaging",
    "keypoint",
    "octree",
    "pattern",
    "search",
]