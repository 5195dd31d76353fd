"""Binary result files.

Each round of results is written to one zstd-compressed file named
``<index>.<ext>``. Decompressed, a file is a flat sequence of 28-byte
records with no header or padding:

    offset  field
    0       initial angular velocity x (local frame) [rad/s]
    4       initial angular velocity y
    8       initial angular velocity z
    12      target pitch relative to initial orientation [rad]
    16      target yaw
    20      target roll
    24      time to converge [s]

All values are little-endian float32.

Label conventions. The target angles are relative to the initial
orientation in the engine's own pitch/yaw/roll convention, and the
controller aimed the nose along (cos p cos y, cos p sin y, sin p) with
roll levelled against world up seen from the vehicle. Datasets produced
by generators that build the target as (cos p cos y, sin p, cos p sin y),
or that level roll against the vehicle's up axis in world coordinates,
label different manoeuvres and should not be mixed with these files.

Example:
    >>> from recovery.storage import ResultWriter, load_dataset
    >>>
    >>> writer = ResultWriter("results")
    >>> path = writer.write(batch.rows)
    >>> df = load_dataset("results")
"""

import io
from pathlib import Path

import numpy as np
import polars as pl
import zstandard as zstd
from beartype import beartype
from numpy.typing import NDArray

# =============================================================================
# Record Layout
# =============================================================================

RECORD_DTYPE = np.dtype("<f4")
RECORD_FIELDS = 7
RECORD_SIZE = RECORD_FIELDS * RECORD_DTYPE.itemsize  # 28 bytes

COLUMNS = (
    "ang_vel_x",
    "ang_vel_y",
    "ang_vel_z",
    "target_pitch",
    "target_yaw",
    "target_roll",
    "time",
)

DEFAULT_EXTENSION = "bin"
DEFAULT_COMPRESSION_LEVEL = 3


@beartype
def encode_results(rows: NDArray) -> bytes:
    """Serialize result rows, shape (N, 7), to the fixed-width layout."""
    rows = np.asarray(rows)
    if rows.ndim != 2 or rows.shape[1] != RECORD_FIELDS:
        raise ValueError(f"rows must be shape (N, {RECORD_FIELDS}), got {rows.shape}")
    return np.ascontiguousarray(rows, dtype=RECORD_DTYPE).tobytes()


@beartype
def decode_results(data: bytes) -> NDArray[np.float32]:
    """Parse a decompressed buffer back into (N, 7) float32 rows."""
    if len(data) % RECORD_SIZE:
        raise ValueError(
            f"Buffer length {len(data)} is not a multiple of the {RECORD_SIZE}-byte record size"
        )
    rows = np.frombuffer(data, dtype=RECORD_DTYPE).reshape(-1, RECORD_FIELDS)
    return rows.astype(np.float32)


# =============================================================================
# Compression
# =============================================================================


@beartype
def compress(data: bytes, level: int = DEFAULT_COMPRESSION_LEVEL) -> bytes:
    """Compress a buffer with the streaming zstd encoder."""
    out = io.BytesIO()
    zstd.ZstdCompressor(level=level).copy_stream(io.BytesIO(data), out)
    return out.getvalue()


@beartype
def decompress(data: bytes) -> bytes:
    """Decompress a zstd stream (frames need not record their content size)."""
    out = io.BytesIO()
    zstd.ZstdDecompressor().copy_stream(io.BytesIO(data), out)
    return out.getvalue()


# =============================================================================
# Writer
# =============================================================================


class ResultWriter:
    """Writes one numbered, compressed file per round.

    The file index is seeded from the number of entries already in the
    output directory and belongs to this writer alone. It is not
    coordinated with other processes writing to the same directory.

    Attributes:
        directory: Output directory (created if missing)
        extension: File extension without the dot
        level: zstd compression level
        next_index: Index the next file will be named with
    """

    def __init__(
        self,
        directory: str | Path,
        extension: str = DEFAULT_EXTENSION,
        level: int = DEFAULT_COMPRESSION_LEVEL,
    ) -> None:
        self.directory = Path(directory)
        self.extension = extension
        self.level = level

        self.directory.mkdir(parents=True, exist_ok=True)
        self.next_index = sum(1 for _ in self.directory.iterdir())

    def path_for(self, index: int) -> Path:
        return self.directory / f"{index}.{self.extension}"

    @property
    def next_path(self) -> Path:
        return self.path_for(self.next_index)

    def write(self, rows: NDArray) -> Path:
        """Encode, compress and write a round, then advance the index.

        Args:
            rows: Result rows, shape (N, 7)

        Returns:
            Path of the written file
        """
        data = compress(encode_results(rows), self.level)
        path = self.next_path
        path.write_bytes(data)

        self.next_index += 1
        return path


# =============================================================================
# Reading
# =============================================================================


@beartype
def read_round(path: str | Path) -> NDArray[np.float32]:
    """Load the rows of one result file."""
    return decode_results(decompress(Path(path).read_bytes()))


def _file_index(path: Path) -> int | None:
    try:
        return int(path.stem)
    except ValueError:
        return None


@beartype
def list_result_files(directory: str | Path, extension: str = DEFAULT_EXTENSION) -> list[Path]:
    """Numbered result files in index order."""
    files = [
        p for p in Path(directory).glob(f"*.{extension}")
        if _file_index(p) is not None
    ]
    return sorted(files, key=_file_index)


@beartype
def rows_to_dataframe(rows: NDArray) -> pl.DataFrame:
    """Convert (N, 7) result rows to a Polars DataFrame."""
    return pl.DataFrame({
        name: np.asarray(rows[:, i], dtype=np.float32)
        for i, name in enumerate(COLUMNS)
    })


@beartype
def load_dataset(directory: str | Path, extension: str = DEFAULT_EXTENSION) -> pl.DataFrame:
    """Load every result file in a directory into one DataFrame.

    Adds a ``file`` column holding the index of the source file.
    """
    frames = [
        rows_to_dataframe(read_round(path)).with_columns(
            pl.lit(_file_index(path), dtype=pl.Int64).alias("file")
        )
        for path in list_result_files(directory, extension)
    ]
    if not frames:
        schema = {name: pl.Float32 for name in COLUMNS}
        schema["file"] = pl.Int64
        return pl.DataFrame(schema=schema)
    return pl.concat(frames)
