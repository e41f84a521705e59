# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import Any, Dict, Optional

# Third-Party Imports
import numpy as np
import pandas as pd
import pingouin as pg
from scipy.spatial.distance import pdist, squareform
from scipy.stats import linregress, spearmanr
from skbio.stats.distance import DistanceMatrix, permanova as PERMANOVA
from skbio.stats.ordination import OrdinationResults, pcoa as PCoA

# Local Imports
from microbiome_repro import constants
from microbiome_repro.groups import SampleGroup
from microbiome_repro.table import AbundanceTable

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('microbiome_repro')

# =============================== HELPER FUNCTIONS ==================================== #

def validate_min_samples(table: AbundanceTable, min_samples: int = 2) -> None:
    """
    Raises:
        ValueError: If the table has fewer than ``min_samples`` samples.
    """
    if table.shape[1] < min_samples:
        raise ValueError(f"At least {min_samples} samples required, got {table.shape[1]}")

# ============================ COEFFICIENT OF VARIATION ============================== #

def coefficient_of_variation(
    table: AbundanceTable,
    groups: SampleGroup
) -> pd.DataFrame:
    """
    Coefficient of variation of each feature within each sample group.

    CV is the sample standard deviation (``ddof=1``) over the mean. A feature
    absent from every sample of a group gets 0; groups with a single sample get
    NaN since their spread is undefined.

    Args:
        table:  Abundance table, usually normalized.
        groups: Grouping of the table's samples, e.g. replicate sets.

    Returns:
        DataFrame of features × groups.
    """
    df = table.to_dataframe()
    result = {}
    for group, samples in groups.partition(table.samples).items():
        sub = df[samples]
        if len(samples) < 2:
            logger.warning(f"Group {group!r} has a single sample; CV undefined")
            result[group] = pd.Series(np.nan, index=df.index)
            continue
        mean = sub.mean(axis=1)
        std = sub.std(axis=1, ddof=1)
        result[group] = (std / mean.where(mean != 0)).fillna(0.0)
    cv = pd.DataFrame(result, index=df.index)
    cv.columns.name = 'group'
    return cv

# ================================ BETA DIVERSITY ==================================== #

def distance_matrix(
    table: AbundanceTable,
    metric: str = constants.DEFAULT_METRIC
) -> DistanceMatrix:
    """
    Pairwise distances between samples (table columns).

    Raises:
        ValueError: Fewer than two samples, or distances that come out NaN
            (e.g. Bray-Curtis between two empty samples).
    """
    validate_min_samples(table, min_samples=2)
    dist = squareform(pdist(table.values.T, metric=metric))
    if np.isnan(dist).any():
        raise ValueError(f"{metric} distances contain NaN; drop empty samples first")
    return DistanceMatrix(dist, ids=list(table.samples))


def within_group_distances(
    dm: DistanceMatrix,
    groups: SampleGroup
) -> pd.DataFrame:
    """
    Long-format pairwise distances between samples sharing a group.

    Returns:
        DataFrame with columns ``group``, ``sample_a``, ``sample_b``, ``distance``.
    """
    rows = []
    for group, samples in groups.partition(dm.ids).items():
        for i, a in enumerate(samples):
            for b in samples[i + 1:]:
                rows.append({'group': group, 'sample_a': a, 'sample_b': b,
                             'distance': dm[a, b]})
    return pd.DataFrame(rows, columns=['group', 'sample_a', 'sample_b', 'distance'])


def pcoa(
    table: AbundanceTable,
    metric: str = constants.DEFAULT_METRIC,
    n_dimensions: Optional[int] = constants.DEFAULT_N_PCOA
) -> OrdinationResults:
    """Principal coordinates of the samples, axes named ``PCo1``, ``PCo2``, ..."""
    dm = distance_matrix(table, metric=metric)
    max_dims = dm.shape[0] - 1
    n_dimensions = min(n_dimensions, max_dims) if n_dimensions else max_dims
    result = PCoA(dm, number_of_dimensions=n_dimensions)
    result.samples.columns = [f"PCo{i+1}" for i in range(result.samples.shape[1])]
    return result


def permanova(
    table: AbundanceTable,
    metadata: pd.DataFrame,
    column: str,
    metric: str = constants.DEFAULT_METRIC,
    permutations: int = constants.DEFAULT_PERMUTATIONS
) -> pd.Series:
    """
    PERMANOVA of sample distances against one metadata column.

    Samples without a value for ``column`` are dropped before testing.
    """
    grouping = metadata[column].reindex(list(table.samples)).dropna()
    if grouping.nunique() < 2:
        raise ValueError(f"PERMANOVA needs at least two levels of {column!r}")
    sub = table.select_samples(grouping.index)
    dm = distance_matrix(sub, metric=metric)
    return PERMANOVA(dm, grouping.astype(str).to_numpy(), permutations=permutations)

# ========================= INTRACLASS CORRELATION (ICC) ============================= #

def icc(
    table: AbundanceTable,
    groups: SampleGroup
) -> pd.DataFrame:
    """
    Intraclass correlation of feature abundances between the replicates of each
    sample group.

    Features are the rated targets and samples the raters, so a high ICC means
    the replicates of a group agree on every feature's abundance. Groups with a
    single sample are skipped with a warning.

    Args:
        table:  Abundance table, usually normalized.
        groups: Grouping of the table's samples into replicate sets.

    Returns:
        ``pingouin.intraclass_corr`` output for every group (all six ICC forms),
        with a leading ``group`` column.

    Raises:
        ValueError: Fewer than ``MIN_ICC_FEATURES`` features, or no group with
            at least two samples.
    """
    if table.shape[0] < constants.MIN_ICC_FEATURES:
        raise ValueError(
            f"ICC needs at least {constants.MIN_ICC_FEATURES} features, got {table.shape[0]}"
        )
    df = table.to_dataframe()
    frames = []
    for group, samples in groups.partition(table.samples).items():
        if len(samples) < 2:
            logger.warning(f"Group {group!r} has a single sample; ICC skipped")
            continue
        long = df[samples].reset_index().melt(
            id_vars='feature', var_name='sample', value_name='abundance'
        )
        res = pg.intraclass_corr(
            data=long, targets='feature', raters='sample', ratings='abundance'
        )
        res.insert(0, 'group', group)
        frames.append(res)
    if not frames:
        raise ValueError("ICC needs at least one group with two or more samples")
    return pd.concat(frames, ignore_index=True)

# ================================== REGRESSION ====================================== #

def regress_variation(
    variation: pd.Series,
    covariate: pd.Series,
    log10: bool = True
) -> Dict[str, Any]:
    """
    Linear and rank regression of a variation measure (e.g. CV) on a covariate
    such as qPCR biomass or mean relative abundance.

    With ``log10`` both variables are log10-transformed and pairs with a
    non-positive value are dropped.

    Returns:
        Dict with ``slope``, ``intercept``, ``r_squared``, ``p_value``,
        ``stderr``, ``spearman_rho``, ``spearman_p`` and ``n``.
    """
    pairs = pd.concat(
        [variation.rename('variation'), covariate.rename('covariate')],
        axis=1, join='inner'
    ).dropna()
    if log10:
        pairs = pairs[(pairs > 0).all(axis=1)]
        pairs = np.log10(pairs)
    if len(pairs) < 3:
        raise ValueError(f"Regression needs at least 3 complete pairs, got {len(pairs)}")

    fit = linregress(pairs['covariate'], pairs['variation'])
    rho, rho_p = spearmanr(pairs['covariate'], pairs['variation'])
    return {
        'slope': fit.slope,
        'intercept': fit.intercept,
        'r_squared': fit.rvalue ** 2,
        'p_value': fit.pvalue,
        'stderr': fit.stderr,
        'spearman_rho': rho,
        'spearman_p': rho_p,
        'n': len(pairs),
    }
