"""
linops: composable linear operators for iterative reconstruction.
"""

__version__ = "0.1.0"

__all__ = [
    "classical_algorithms",
    "exceptions",
    "num",
    "operators",
    "utils",
]
