# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterator, Optional, Tuple, Union

# Third-Party Imports
import pandas as pd

# Local Imports
from microbiome_repro import constants
from microbiome_repro.errors import InvalidInputError

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('microbiome_repro')

# ===================================== RANKS ======================================== #

class Rank(IntEnum):
    """Fixed taxonomic hierarchy. ``SV`` means "no rollup"."""
    KINGDOM = 1
    PHYLUM = 2
    CLASS = 3
    ORDER = 4
    FAMILY = 5
    GENUS = 6
    SPECIES = 7
    SV = 8

    @property
    def label(self) -> str:
        return 'SV' if self is Rank.SV else self.name.title()

    @classmethod
    def taxonomic(cls) -> Tuple["Rank", ...]:
        """Ranks that carry a taxonomy label, Kingdom first."""
        return tuple(r for r in cls if r is not cls.SV)

    @classmethod
    def parse(cls, value: Union[str, "Rank"]) -> "Rank":
        if isinstance(value, Rank):
            return value
        key = str(value).strip().upper()
        if key == 'DOMAIN':
            key = 'KINGDOM'
        try:
            return cls[key]
        except KeyError:
            raise InvalidInputError(f"Unknown taxonomic rank: {value!r}") from None

    def __str__(self) -> str:
        return self.label


RANK_LABELS = tuple(r.label for r in Rank.taxonomic())

# ============================== TAXONOMY ASSIGNMENT ================================= #

def is_unassigned(label: Optional[str]) -> bool:
    """
    True for ``None`` and the exact sentinels in ``UNASSIGNED_LABELS``.

    Matching is exact and case-sensitive: ``Unidentified`` or
    ``uncultured bacterium`` count as assigned names. ``TaxonomyAssignment``
    strips surrounding whitespace from its labels before this check.
    """
    return label is None or label in constants.UNASSIGNED_LABELS


def _clean_label(value) -> str:
    # Missing cells read from disk become the "NA" sentinel
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return "NA"
    return str(value).strip()


@dataclass(frozen=True)
class TaxonomyAssignment:
    """Rank labels of one feature, Kingdom to Species."""
    labels: Tuple[str, ...]

    def __post_init__(self) -> None:
        labels = tuple(_clean_label(v) for v in self.labels)
        if len(labels) != len(RANK_LABELS):
            raise InvalidInputError(
                f"Taxonomy assignment needs {len(RANK_LABELS)} ranks, got {len(labels)}"
            )
        object.__setattr__(self, 'labels', labels)

    def at(self, rank: Union[str, Rank]) -> str:
        rank = Rank.parse(rank)
        if rank is Rank.SV:
            raise InvalidInputError("SV is not a taxonomic rank")
        return self.labels[rank - 1]

    def is_assigned(self, rank: Union[str, Rank]) -> bool:
        return not is_unassigned(self.at(rank))


def resolve_label(assignment: TaxonomyAssignment, rank: Union[str, Rank]) -> str:
    """
    Label of a feature at ``rank`` with deepest-available-ancestor fallback.

    Walks Kingdom down to ``rank`` and keeps the deepest assigned label. When
    ``rank`` itself is unassigned the ancestor label is prefixed with the
    unassigned marker, e.g. ``unidentified_Firmicutes``. A feature with no
    assigned rank at all resolves to the bare marker.
    """
    rank = Rank.parse(rank)
    if rank is Rank.SV:
        raise InvalidInputError("SV labels are feature IDs, not taxonomy labels")

    deepest: Optional[Rank] = None
    for r in Rank.taxonomic()[:rank]:
        if assignment.is_assigned(r):
            deepest = r

    if deepest is None:
        return constants.UNASSIGNED_MARKER
    label = assignment.at(deepest)
    if deepest is not rank:
        return f"{constants.UNASSIGNED_MARKER}_{label}"
    return label

# ================================== TAXONOMY CLASS ================================== #

class Taxonomy(Mapping):
    """
    Read-only mapping of feature ID to :class:`TaxonomyAssignment`.

    Build from a rank-column table (BLAST-derived taxonomy) with
    :meth:`from_dataframe` or from QIIME ``d__...; p__...`` strings with
    :meth:`from_qiime`.
    """

    def __init__(self, assignments: Dict[str, TaxonomyAssignment]) -> None:
        self._assignments = dict(assignments)

    def __getitem__(self, feature: str) -> TaxonomyAssignment:
        return self._assignments[feature]

    def __iter__(self) -> Iterator[str]:
        return iter(self._assignments)

    def __len__(self) -> int:
        return len(self._assignments)

    def assignment(self, feature: str) -> TaxonomyAssignment:
        try:
            return self._assignments[feature]
        except KeyError:
            raise InvalidInputError(f"No taxonomy assignment for feature {feature!r}") from None

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "Taxonomy":
        """
        Parse a feature-indexed table with one column per rank.

        Column names are matched case-insensitively; ``Domain`` is accepted for
        ``Kingdom``. Ranks absent from the table are treated as unassigned.
        """
        if df.index.duplicated().any():
            dupes = df.index[df.index.duplicated()].unique().tolist()
            raise InvalidInputError(f"Duplicate feature IDs in taxonomy: {dupes}")

        columns = {}
        for col in df.columns:
            try:
                columns[Rank.parse(col)] = col
            except InvalidInputError:
                continue
        missing = [r.label for r in Rank.taxonomic() if r not in columns]
        if len(missing) == len(RANK_LABELS):
            raise InvalidInputError("Taxonomy table has no rank columns")
        if missing:
            logger.debug(f"Taxonomy table lacks ranks {missing}; treating as unassigned")

        assignments = {}
        for feature, row in df.iterrows():
            labels = tuple(
                row[columns[r]] if r in columns else "NA" for r in Rank.taxonomic()
            )
            assignments[str(feature)] = TaxonomyAssignment(labels)
        return cls(assignments)

    @classmethod
    def from_qiime(cls, taxa: pd.Series) -> "Taxonomy":
        """Parse a feature-indexed series of QIIME taxonomy strings."""
        assignments = {}
        for feature, taxonomy in taxa.items():
            labels = tuple(
                _extract_level(taxonomy, prefix) for prefix in constants.QIIME_RANK_PREFIXES
            )
            assignments[str(feature)] = TaxonomyAssignment(labels)
        return cls(assignments)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [a.labels for a in self._assignments.values()],
            index=pd.Index(list(self._assignments), name='feature'),
            columns=list(RANK_LABELS)
        )


def _extract_level(taxonomy: Optional[str], level: str) -> str:
    """
    Extract one rank from a QIIME taxonomy string.

    Args:
        taxonomy: Raw taxonomy string, e.g. ``d__Bacteria; p__Firmicutes``.
        level:    Rank prefix (d/p/c/o/f/g/s).

    Returns:
        Name at that rank, or ``"NA"`` when absent or unassigned.
    """
    if not isinstance(taxonomy, str) or taxonomy in ('Unassigned', 'Unclassified'):
        return "NA"
    prefix = level + '__'
    for part in taxonomy.split(';'):
        part = part.strip()
        if part.startswith(prefix):
            return part[len(prefix):].strip()
    return "NA"
