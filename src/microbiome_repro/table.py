# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import Dict, Iterable, List, Sequence, Tuple, Union

# Third-Party Imports
import numpy as np
import pandas as pd
from biom import Table
from scipy.sparse import issparse

# Local Imports
from microbiome_repro.errors import InvalidInputError

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('microbiome_repro')

# =============================== HELPER FUNCTIONS ==================================== #

def _check_unique(labels: Sequence[str], axis: str) -> None:
    seen = set()
    duplicates = []
    for label in labels:
        if label in seen:
            duplicates.append(label)
        seen.add(label)
    if duplicates:
        raise InvalidInputError(
            f"Duplicate {axis} labels in abundance table: {sorted(set(map(str, duplicates)))}"
        )


def _index_of(labels: Sequence[str]) -> Dict[str, int]:
    return {label: i for i, label in enumerate(labels)}

# ================================= ABUNDANCE TABLE ================================== #

class AbundanceTable:
    """
    Immutable feature × sample abundance matrix.

    Rows are features (sequence variants or taxa), columns are samples. Label to
    position lookups are built once at construction and every transform returns a
    new table; the backing array is read-only.

    Attributes:
        features: Row labels in table order.
        samples:  Column labels in table order.
    """

    def __init__(
        self,
        values: Union[np.ndarray, Sequence[Sequence[float]]],
        features: Iterable[str],
        samples: Iterable[str]
    ) -> None:
        features = tuple(features)
        samples = tuple(samples)
        try:
            data = np.array(values, dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Abundance values must be numeric: {e}") from e
        if data.size == 0:
            data = data.reshape(len(features), len(samples))
        if data.ndim != 2:
            raise InvalidInputError(
                f"Abundance values must be 2-dimensional, got {data.ndim} dimension(s)"
            )
        if data.shape != (len(features), len(samples)):
            raise InvalidInputError(
                f"Shape {data.shape} does not match {len(features)} features × "
                f"{len(samples)} samples"
            )
        if not np.isfinite(data).all():
            raise InvalidInputError("Abundance values contain NaN or infinite entries")
        _check_unique(features, 'feature')
        _check_unique(samples, 'sample')

        data.flags.writeable = False
        self._values = data
        self._features = features
        self._samples = samples
        self._feature_index = _index_of(features)
        self._sample_index = _index_of(samples)

    # ----------------------------------- builders ----------------------------------- #

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "AbundanceTable":
        """Build from a features × samples DataFrame (index = features)."""
        if not all(pd.api.types.is_numeric_dtype(dtype) for dtype in df.dtypes):
            raise InvalidInputError("Abundance DataFrame contains non-numeric columns")
        return cls(df.to_numpy(dtype=float), df.index, df.columns)

    @classmethod
    def from_biom(cls, table: Table) -> "AbundanceTable":
        """Build from a BIOM table (observations × samples)."""
        data = table.matrix_data
        data = data.toarray() if issparse(data) else np.asarray(data)
        return cls(
            data,
            [str(i) for i in table.ids(axis='observation')],
            [str(i) for i in table.ids(axis='sample')]
        )

    def with_values(self, values: np.ndarray) -> "AbundanceTable":
        """New table with the same labels and the given values."""
        return AbundanceTable(values, self._features, self._samples)

    # ---------------------------------- conversion ---------------------------------- #

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            self._values.copy(),
            index=pd.Index(self._features, name='feature'),
            columns=pd.Index(self._samples, name='sample')
        )

    def to_biom(self) -> Table:
        return Table(
            self._values.copy(),
            observation_ids=list(self._features),
            sample_ids=list(self._samples)
        )

    # ---------------------------------- properties ---------------------------------- #

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def features(self) -> Tuple[str, ...]:
        return self._features

    @property
    def samples(self) -> Tuple[str, ...]:
        return self._samples

    @property
    def shape(self) -> Tuple[int, int]:
        return self._values.shape

    @property
    def is_empty(self) -> bool:
        return self._values.shape[0] == 0

    def __len__(self) -> int:
        return len(self._features)

    def __contains__(self, feature: str) -> bool:
        return feature in self._feature_index

    # ----------------------------------- lookups ------------------------------------ #

    def feature_position(self, feature: str) -> int:
        try:
            return self._feature_index[feature]
        except KeyError:
            raise InvalidInputError(f"Feature not in table: {feature!r}") from None

    def has_sample(self, sample: str) -> bool:
        return sample in self._sample_index

    def sample_position(self, sample: str) -> int:
        try:
            return self._sample_index[sample]
        except KeyError:
            raise InvalidInputError(f"Sample not in table: {sample!r}") from None

    def column_sums(self) -> np.ndarray:
        return self._values.sum(axis=0)

    def row_sums(self) -> np.ndarray:
        return self._values.sum(axis=1)

    # ---------------------------------- selection ----------------------------------- #

    def select_samples(self, samples: Iterable[str]) -> "AbundanceTable":
        samples = list(samples)
        positions = [self.sample_position(s) for s in samples]
        return AbundanceTable(self._values[:, positions], self._features, samples)

    def select_features(self, features: Iterable[str]) -> "AbundanceTable":
        features = list(features)
        positions = [self.feature_position(f) for f in features]
        return AbundanceTable(self._values[positions, :], features, self._samples)

    def drop_features(self, features: Iterable[str]) -> "AbundanceTable":
        """Drop the given features; labels not in the table raise."""
        drop = set(features)
        for feature in drop:
            self.feature_position(feature)
        keep: List[str] = [f for f in self._features if f not in drop]
        return self.select_features(keep)

    # ---------------------------------- comparison ---------------------------------- #

    def allclose(self, other: "AbundanceTable", atol: float = 1e-9) -> bool:
        return (
            self._features == other._features
            and self._samples == other._samples
            and np.allclose(self._values, other._values, rtol=0, atol=atol)
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AbundanceTable):
            return NotImplemented
        return (
            self._features == other._features
            and self._samples == other._samples
            and np.array_equal(self._values, other._values)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"AbundanceTable({self.shape[0]} features × {self.shape[1]} samples)"
        )
