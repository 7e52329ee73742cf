import os # for file paths
import numpy as np
np.set_printoptions(precision=5, suppress=True, floatmode='fixed')

from mpi4py import MPI

# Binary layout: n (8 bytes), m (8 bytes), dtype_len (4 bytes), dtype_str (dtype_len), data
HEADER_BYTES = 20

################################################################################
class dmat:
################################################################################
    """
    Dense row-major matrix over one flat, contiguous numpy buffer.

    Entry (i, j) lives at values[i * ncols + j]. The buffer is what gets handed
    to MPI, so a contiguous block of rows [start, end) is always the flat slice
    values[start * ncols : end * ncols].
    """

    ############################################################################
    # Constructor
    ############################################################################

    def __init__(self, n, m, values=None, dtype=np.float64):
        n, m = int(n), int(m)
        if n < 0 or m < 0:
            raise ValueError(f"matrix dimensions must be non-negative, got ({n}, {m})")

        self.n = n
        self.m = m
        self.dtype = np.dtype(dtype)

        self.values = np.zeros(n * m, dtype=self.dtype)

        if values is not None:
            values = np.asarray(values, dtype=self.dtype).ravel()
            if values.size != n * m:
                raise ValueError(f"expected {n * m} values for a {n}x{m} matrix, got {values.size}")
            self.values[:] = values    # deep copy

    @staticmethod
    def zeros(n, m, dtype=np.float64) -> 'dmat':
        return dmat(n, m, dtype=dtype)

    @staticmethod
    def identity(n, dtype=np.float64) -> 'dmat':
        return dmat(n, n, np.eye(n, dtype=dtype), dtype=dtype)

    @staticmethod
    def from_numpy(src_matrix: np.ndarray, dtype=None) -> 'dmat':
        src_matrix = np.asarray(src_matrix)
        if src_matrix.ndim == 1:
            src_matrix = np.atleast_2d(src_matrix)
        if src_matrix.ndim != 2:
            raise ValueError(f"expected a 2D array, got {src_matrix.ndim} dimensions")

        n, m = src_matrix.shape
        return dmat(n, m, src_matrix, dtype=dtype if dtype is not None else np.float64)

    def to_numpy(self) -> np.ndarray:
        return self.as_array().copy()

    def copy(self):
        # Deep copy
        return dmat(self.n, self.m, self.values, dtype=self.dtype)

    def __copy__(self):
        return self.copy()

    def __deepcopy__(self, memo):
        # dmat only holds one numpy buffer and ints, so a deep copy is the same as a shallow copy
        return self.copy()

    ############################################################################
    # Accessors and string representations
    ############################################################################

    @property
    def nrows(self):
        return self.n

    @property
    def ncols(self):
        return self.m

    @property
    def shape(self):
        return (self.n, self.m)

    def __len__(self):
        return self.values.size

    def as_array(self) -> np.ndarray:
        # 2D view (no copy) of the flat buffer
        return self.values.reshape(self.n, self.m)

    def row_slice(self, start, end) -> np.ndarray:
        # Flat view of rows [start, end)
        return self.values[start * self.m : end * self.m]

    def get(self, i, j):
        return self.values[i * self.m + j]

    def set(self, i, j, value):
        self.values[i * self.m + j] = value

    def incr(self, i, j, delta):
        self.values[i * self.m + j] += delta

    def fill(self, value):
        self.values.fill(value)

    def __eq__(self, other):
        if not isinstance(other, dmat):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self.values, other.values)

    __hash__ = None

    def __repr__(self):
        return f"dmat({self.n}x{self.m}, dtype={self.dtype.name})"

    def __str__(self):
        return f"{self.as_array()}"

    ############################################################################
    #                           File I/O
    ############################################################################
    # Only the root ever holds the full inputs and output, so files are opened
    # on COMM_SELF rather than collectively

    def to_file(self, filename, prefix_current_directory=False) -> int:
        filepath = os.path.join(os.path.dirname(__file__), filename) if prefix_current_directory else str(filename)

        # Open the file
        amode = MPI.MODE_CREATE | MPI.MODE_WRONLY
        fh = MPI.File.Open(MPI.COMM_SELF, filepath, amode)
        try:
            fh.Set_size(0)  # truncate anything left from a previous write

            # Write header
            dtype_str = self.dtype.name  # e.g., 'float64'
            dtype_bytes = dtype_str.encode('utf-8')
            dtype_len = np.int32(len(dtype_bytes))  # store length as 4 bytes

            header = np.array([self.n, self.m], dtype=np.int64).tobytes()
            fh.Write_at(0, header)
            fh.Write_at(16, dtype_len.tobytes())
            fh.Write_at(HEADER_BYTES, dtype_bytes)

            data_offset = HEADER_BYTES + int(dtype_len)

            if self.values.size > 0:
                fh.Write_at(data_offset, self.values)

            return fh.Get_size()
        finally:
            fh.Close()

    @staticmethod
    def from_file(filename, prefix_current_directory=False) -> tuple['dmat', int]:
        filepath = os.path.join(os.path.dirname(__file__), filename) if prefix_current_directory else str(filename)

        # Open the file
        amode = MPI.MODE_RDONLY
        fh = MPI.File.Open(MPI.COMM_SELF, filepath, amode)
        try:
            file_size = fh.Get_size()

            header = np.empty(2, dtype=np.int64)
            fh.Read_at(0, header)
            dtype_len = np.empty(1, dtype=np.int32)
            fh.Read_at(16, dtype_len)
            dtype_bytes = bytearray(int(dtype_len[0]))
            fh.Read_at(HEADER_BYTES, dtype_bytes)

            try:
                dtype_str = dtype_bytes.decode('utf-8')
                dtype = np.dtype(dtype_str)
            except (UnicodeDecodeError, TypeError) as e:
                raise ValueError(f"{filepath}: unreadable dtype {bytes(dtype_bytes)!r} in header") from e

            nrows, ncols = int(header[0]), int(header[1])

            data_offset = HEADER_BYTES + int(dtype_len[0])

            expected = data_offset + nrows * ncols * dtype.itemsize
            if file_size < expected:
                raise ValueError(f"{filepath}: expected {expected} bytes for a {nrows}x{ncols} {dtype_str} matrix, found {file_size}")

            matrix = dmat(nrows, ncols, dtype=dtype)
            if matrix.values.size > 0:
                fh.Read_at(data_offset, matrix.values)
        finally:
            fh.Close()

        return (matrix, file_size)
