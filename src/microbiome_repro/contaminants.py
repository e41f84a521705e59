# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import FrozenSet, Iterable, List

# Third-Party Imports
import numpy as np
import pandas as pd

# Local Imports
from microbiome_repro import constants
from microbiome_repro.errors import InvalidInputError
from microbiome_repro.table import AbundanceTable

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('microbiome_repro')

# =============================== HELPER FUNCTIONS ==================================== #

def _validate_sample_sets(
    table: AbundanceTable,
    control_samples: Iterable[str],
    true_samples: Iterable[str]
) -> tuple:
    controls: List[str] = list(dict.fromkeys(control_samples))
    trues: List[str] = list(dict.fromkeys(true_samples))
    if not controls:
        raise InvalidInputError("No control samples given")
    if not trues:
        raise InvalidInputError("No true samples given")
    overlap = set(controls) & set(trues)
    if overlap:
        raise InvalidInputError(
            f"Control and true sample sets overlap: {sorted(overlap)[:10]}"
        )
    missing = [s for s in controls + trues if not table.has_sample(s)]
    if missing:
        raise InvalidInputError(
            f"{len(missing)} sample(s) not in the table: {missing[:10]}"
        )
    return controls, trues

# ================================ CONTAMINANTS ====================================== #

def control_percentages(
    raw_table: AbundanceTable,
    control_samples: Iterable[str],
    true_samples: Iterable[str]
) -> pd.Series:
    """
    Percentage of each feature's reads found in control samples.

    ``100 * control_total / (control_total + true_total)`` over raw counts; a
    feature with no reads in either set gets 0.

    Returns:
        Series indexed by feature.
    """
    controls, trues = _validate_sample_sets(raw_table, control_samples, true_samples)
    if (raw_table.values < 0).any():
        raise InvalidInputError("Raw count table contains negative values")

    values = raw_table.values
    control_total = values[:, [raw_table.sample_position(s) for s in controls]].sum(axis=1)
    true_total = values[:, [raw_table.sample_position(s) for s in trues]].sum(axis=1)
    total = control_total + true_total

    pct = np.zeros(len(raw_table), dtype=float)
    np.divide(100.0 * control_total, total, out=pct, where=total > 0)
    return pd.Series(pct, index=pd.Index(raw_table.features, name='feature'), name='pct_control')


def classify(
    raw_table: AbundanceTable,
    control_samples: Iterable[str],
    true_samples: Iterable[str],
    threshold_pct: float = constants.DEFAULT_CONTAMINANT_THRESHOLD_PCT
) -> FrozenSet[str]:
    """
    Flag features whose reads come disproportionately from control samples.

    Classification always uses raw counts, never normalized values.

    Args:
        raw_table:       Raw (non-normalized) count table.
        control_samples: Negative-control / blank sample labels.
        true_samples:    True sample labels, disjoint from the controls.
        threshold_pct:   Flag when the control percentage exceeds this, in (0, 100].

    Returns:
        Labels of contaminant features.

    Raises:
        InvalidInputError: Overlapping or empty sample sets, unknown samples, or a
            threshold outside (0, 100].
    """
    if not 0 < threshold_pct <= 100:
        raise InvalidInputError(f"threshold_pct must be in (0, 100], got {threshold_pct}")
    pct = control_percentages(raw_table, control_samples, true_samples)
    flagged = frozenset(pct.index[(pct > threshold_pct).to_numpy()])
    logger.info(
        f"Flagged {len(flagged)}/{len(raw_table)} features as contaminants "
        f"(> {threshold_pct:g}% of reads in controls)"
    )
    return flagged


def remove_contaminants(
    table: AbundanceTable,
    contaminants: Iterable[str]
) -> AbundanceTable:
    """Drop flagged features that are present in ``table``."""
    drop = [f for f in contaminants if f in table]
    return table.drop_features(drop)
