# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
import math
from typing import Dict, Hashable, Iterable, List, Mapping, Optional

# Third-Party Imports
import numpy as np

# Local Imports
from microbiome_repro import constants
from microbiome_repro.errors import InvalidInputError
from microbiome_repro.table import AbundanceTable

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('microbiome_repro')

# =============================== HELPER FUNCTIONS ==================================== #

def _validate(table: AbundanceTable, target_sum: float) -> None:
    if not target_sum > 0:
        raise InvalidInputError(f"target_sum must be positive, got {target_sum}")
    if (table.values < 0).any():
        raise InvalidInputError("Abundance table contains negative values")


def _tolerance(target_sum: float) -> float:
    return constants.NORMALIZE_TOLERANCE * max(1.0, target_sum)


def _unconverged(sums: np.ndarray, target_sum: float, tol: float) -> bool:
    nonzero = sums != 0
    return bool((np.abs(sums[nonzero] - target_sum) > tol).any())


def _column_sums(data: np.ndarray) -> np.ndarray:
    """Correctly rounded column sums."""
    return np.array([math.fsum(column) for column in data.T], dtype=float)


def _rescale_columns(values: np.ndarray, target_sum: float) -> np.ndarray:
    """Fixed-point column rescaling; all-zero columns are left at zero."""
    data = np.array(values, dtype=float)
    # Column maxima become 1 so totals stay finite
    peaks = data.max(axis=0) if data.shape[0] else np.zeros(data.shape[1])
    nonzero = peaks > 0
    data[:, nonzero] = data[:, nonzero] / peaks[nonzero]
    tol = _tolerance(target_sum)
    sums = _column_sums(data)
    iterations = 0
    while _unconverged(sums, target_sum, tol):
        if iterations == constants.MAX_NORMALIZE_ITERATIONS:
            raise InvalidInputError(
                f"Column sums did not converge to {target_sum} within "
                f"{constants.MAX_NORMALIZE_ITERATIONS} iterations"
            )
        nonzero = sums != 0
        data[:, nonzero] = data[:, nonzero] * (target_sum / sums[nonzero])
        sums = _column_sums(data)
        iterations += 1
    logger.debug(f"Column normalization converged after {iterations} iteration(s)")
    return data


def _row_partition(
    table: AbundanceTable,
    groups: Mapping[str, Hashable]
) -> Dict[Hashable, List[int]]:
    unknown = [row for row in groups if row not in table]
    if unknown:
        raise InvalidInputError(
            f"Row grouping references {len(unknown)} row(s) not in the table: {unknown[:10]}"
        )
    partition: Dict[Hashable, List[int]] = {}
    ungrouped = []
    for position, feature in enumerate(table.features):
        if feature not in groups:
            ungrouped.append(feature)
            continue
        partition.setdefault(groups[feature], []).append(position)
    if ungrouped:
        raise InvalidInputError(
            f"{len(ungrouped)} row(s) have no group: {ungrouped[:10]}"
        )
    return partition

# ================================= NORMALIZATION ==================================== #

def label_field_groups(
    features: Iterable[str],
    level: int,
    delim: str = constants.DEFAULT_LABEL_DELIMITER
) -> Dict[str, str]:
    """
    Group row labels by one field of the delimited label.

    Args:
        features: Row labels such as ``p__Firmicutes|g__Bacillus``.
        level:    1-based position of the field to group by.
        delim:    Field delimiter (literal, not a regex).

    Returns:
        Mapping of row label to group key.
    """
    if level < 1:
        raise InvalidInputError(f"level must be >= 1, got {level}")
    groups = {}
    for feature in features:
        fields = str(feature).split(delim)
        if len(fields) < level:
            raise InvalidInputError(
                f"Row label {feature!r} has fewer than {level} field(s) split by {delim!r}"
            )
        groups[feature] = fields[level - 1]
    return groups


def normalize(
    table: AbundanceTable,
    target_sum: float = constants.DEFAULT_TARGET_SUM,
    groups: Optional[Mapping[str, Hashable]] = None
) -> AbundanceTable:
    """
    Rescale every column (sample) of ``table`` to sum to ``target_sum``.

    Rescaling repeats until each non-zero column sum is within tolerance of
    ``target_sum``. Columns summing to zero stay zero. With ``groups`` (row label
    to group key, see :func:`label_field_groups`) each row partition is
    normalized on its own and the rows are returned in input order.

    Args:
        table:      Non-negative abundance table.
        target_sum: Column total to reach; 100 gives percentages.
        groups:     Optional row grouping covering every row of ``table``.

    Returns:
        New table with the same labels and shape.

    Raises:
        InvalidInputError: Negative values, non-positive ``target_sum``, a grouping
            that does not match the table rows, or failure to converge.
    """
    _validate(table, target_sum)
    if groups is None:
        return table.with_values(_rescale_columns(table.values, target_sum))

    partition = _row_partition(table, groups)
    out = np.array(table.values, dtype=float)
    for key, positions in partition.items():
        logger.debug(f"Normalizing row group {key!r} ({len(positions)} rows)")
        out[positions, :] = _rescale_columns(table.values[positions, :], target_sum)
    return table.with_values(out)


def normalize_rows(
    table: AbundanceTable,
    target_sum: float = constants.DEFAULT_TARGET_SUM
) -> AbundanceTable:
    """Rescale every row (feature) to sum to ``target_sum``; zero rows stay zero."""
    _validate(table, target_sum)
    return table.with_values(_rescale_columns(table.values.T, target_sum).T)
