"""MinHash + LSH near-duplicate detection for short inspirational copy."""

__all__ = [
    "models",
    "normalizer",
    "shingles",
    "minhash",
    "lsh",
    "similarity",
    "clustering",
    "library",
    "engine",
    "config",
    "storage",
    "judge",
    "api",
    "cli",
]

__version__ = "0.1.0"
