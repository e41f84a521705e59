# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from collections.abc import Mapping
from typing import Dict, Hashable, Iterable, Iterator, List, Tuple

# Third-Party Imports
import pandas as pd

# Local Imports
from microbiome_repro.errors import InvalidInputError

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('microbiome_repro')

# =================================== SAMPLE GROUP =================================== #

class SampleGroup(Mapping):
    """
    Read-only mapping of sample label to group label, e.g. control vs. sample or
    dilution level.
    """

    def __init__(self, assignments: Dict[str, Hashable]) -> None:
        self._assignments = {str(k): v for k, v in assignments.items()}

    def __getitem__(self, sample: str) -> Hashable:
        return self._assignments[sample]

    def __iter__(self) -> Iterator[str]:
        return iter(self._assignments)

    def __len__(self) -> int:
        return len(self._assignments)

    def __repr__(self) -> str:
        return f"SampleGroup({len(self)} samples, {len(self.groups())} groups)"

    @classmethod
    def from_metadata(cls, metadata: pd.DataFrame, column: str) -> "SampleGroup":
        """Group samples (metadata index) by the values of one metadata column.

        Samples with a missing value in ``column`` are left unassigned.
        """
        if column not in metadata.columns:
            raise InvalidInputError(f"Metadata column not found: {column!r}")
        values = metadata[column].dropna()
        return cls(dict(zip(values.index.astype(str), values)))

    def groups(self) -> List[Hashable]:
        """Distinct group labels in first-seen order."""
        return list(dict.fromkeys(self._assignments.values()))

    def group_of(self, sample: str) -> Hashable:
        try:
            return self._assignments[sample]
        except KeyError:
            raise InvalidInputError(f"Sample {sample!r} has no group assignment") from None

    def partition(self, samples: Iterable[str]) -> Dict[Hashable, List[str]]:
        """Split ``samples`` by group, keeping their order within each group."""
        parts: Dict[Hashable, List[str]] = {}
        unassigned = []
        for sample in samples:
            if sample not in self._assignments:
                unassigned.append(sample)
                continue
            parts.setdefault(self._assignments[sample], []).append(sample)
        if unassigned:
            raise InvalidInputError(
                f"{len(unassigned)} sample(s) have no group assignment: {unassigned[:10]}"
            )
        return parts

    def split_controls(
        self,
        samples: Iterable[str],
        control_group: Hashable
    ) -> Tuple[List[str], List[str]]:
        """Return ``(control_samples, true_samples)`` among ``samples``."""
        controls, true_samples = [], []
        for group, members in self.partition(samples).items():
            (controls if group == control_group else true_samples).extend(members)
        return controls, true_samples

# ================================= LEVEL LABELLING ================================== #

def label_levels_with_counts(
    values: Iterable,
    original_levels_as_index: bool = False
) -> pd.Series:
    """
    Relabel categorical values as ``"<value> (n=<count>)"``.

    The result is an ordered categorical whose categories follow the level order
    of the input (its categories if it is already categorical, otherwise first
    appearance).

    Args:
        values:                   Group labels, one per sample.
        original_levels_as_index: Index the result by the original values.

    Returns:
        Series of relabelled categories.
    """
    series = pd.Series(values)
    if isinstance(series.dtype, pd.CategoricalDtype):
        levels = list(series.cat.categories)
    else:
        levels = list(dict.fromkeys(series.dropna()))
    counts = series.value_counts()

    mapping = {level: f"{level} (n={int(counts.get(level, 0))})" for level in levels}
    relabelled = pd.Categorical(
        series.map(mapping),
        categories=[mapping[level] for level in levels],
        ordered=True
    )
    index = pd.Index(series.values) if original_levels_as_index else series.index
    return pd.Series(relabelled, index=index)
