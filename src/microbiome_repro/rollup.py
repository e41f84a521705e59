# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional, Union

# Third-Party Imports
import numpy as np

# Local Imports
from microbiome_repro.errors import InvalidInputError
from microbiome_repro.table import AbundanceTable
from microbiome_repro.taxonomy import Rank, Taxonomy, resolve_label
from microbiome_repro.utils.progress import format_task_desc, get_progress_bar

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('microbiome_repro')

# ==================================== FUNCTIONS ===================================== #

def resolve_labels(
    features: Iterable[str],
    taxonomy: Taxonomy,
    rank: Union[str, Rank]
) -> List[str]:
    """Resolved label at ``rank`` for each feature, in order."""
    rank = Rank.parse(rank)
    features = list(features)
    missing = [f for f in features if f not in taxonomy]
    if missing:
        raise InvalidInputError(
            f"{len(missing)} feature(s) lack a taxonomy assignment: {missing[:10]}"
        )
    if rank is Rank.SV:
        return features
    return [resolve_label(taxonomy[f], rank) for f in features]


def rollup(
    table: AbundanceTable,
    taxonomy: Taxonomy,
    rank: Union[str, Rank]
) -> AbundanceTable:
    """
    Aggregate feature rows up to ``rank`` by summing rows that share a label.

    Labels come from :func:`~microbiome_repro.taxonomy.resolve_label`, so
    features unassigned at ``rank`` are pooled under their deepest assigned
    ancestor with an ``unidentified_`` prefix. Output rows keep first-seen label
    order and column sums are unchanged. ``rank="SV"`` returns the table as is.

    Raises:
        InvalidInputError: A feature in ``table`` has no taxonomy assignment.
    """
    rank = Rank.parse(rank)
    labels = resolve_labels(table.features, taxonomy, rank)
    if rank is Rank.SV:
        return table.with_values(table.values)

    positions: Dict[str, int] = {}
    codes = np.empty(len(labels), dtype=int)
    for i, label in enumerate(labels):
        codes[i] = positions.setdefault(label, len(positions))

    summed = np.zeros((len(positions), table.shape[1]), dtype=float)
    np.add.at(summed, codes, table.values)
    logger.debug(f"Rolled {len(table)} features up to {len(positions)} {rank.label} labels")
    return AbundanceTable(summed, list(positions), table.samples)


def rollup_ranks(
    table: AbundanceTable,
    taxonomy: Taxonomy,
    ranks: Iterable[Union[str, Rank]],
    max_workers: Optional[int] = None
) -> Dict[Rank, AbundanceTable]:
    """
    Roll ``table`` up to several ranks concurrently.

    Each rollup is independent, so they run in a thread pool and results are
    collected as they finish.

    Returns:
        Mapping of rank to rolled-up table, in the order ``ranks`` were given.
    """
    ranks = list(dict.fromkeys(Rank.parse(r) for r in ranks))
    if not ranks:
        return {}
    # Fail fast before spinning up workers
    resolve_labels(table.features, taxonomy, Rank.SV)

    if max_workers is None:
        cpu_count = os.cpu_count() or 1
        max_workers = min(len(ranks), max(1, cpu_count // 2))

    results: Dict[Rank, AbundanceTable] = {}
    with get_progress_bar(transient=True) as progress:
        task = progress.add_task(format_task_desc("Taxonomic rollup"), total=len(ranks))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_rank = {
                executor.submit(rollup, table, taxonomy, rank): rank for rank in ranks
            }
            try:
                for future in as_completed(future_to_rank):
                    rank = future_to_rank[future]
                    results[rank] = future.result()
                    progress.update(task, advance=1)
            except Exception:
                for future in future_to_rank:
                    future.cancel()
                raise
    return {rank: results[rank] for rank in ranks}
