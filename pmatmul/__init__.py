# pmatmul/__init__.py

__version__ = "0.1.0"
__all__ = [
    "dmat", "Communicator", "CommunicationError",
    "matmul", "multiply", "sequential_matmul",
    "row_range", "row_ranges",
    "print_matrix", "print_ordered_by_rank", "print_on_root",
] # for explicit export: from pmatmul import *

from .utilities import print_matrix, print_ordered_by_rank, print_on_root
from .matrix import dmat
from .communicator import Communicator, CommunicationError
from .partition import row_range, row_ranges
from .matmul import matmul, multiply, sequential_matmul
