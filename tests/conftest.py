import numpy as np
import pandas as pd
import pytest

from microbiome_repro.groups import SampleGroup
from microbiome_repro.table import AbundanceTable
from microbiome_repro.taxonomy import Taxonomy, TaxonomyAssignment


BACILLUS = ("Bacteria", "Firmicutes", "Bacilli", "Bacillales", "Bacillaceae", "Bacillus", "subtilis")
FIRMICUTES_ONLY = ("Bacteria", "Firmicutes", "NA", "", "uncultured", "unidentified", "NA")
ESCHERICHIA = (
    "Bacteria", "Proteobacteria", "Gammaproteobacteria", "Enterobacterales",
    "Enterobacteriaceae", "Escherichia", "coli",
)


@pytest.fixture
def raw_table():
    """Two features, two true samples and one negative control."""
    return AbundanceTable(
        [[10, 10, 90], [0, 0, 5]],
        features=["f1", "f2"],
        samples=["s1", "s2", "s3"],
    )


@pytest.fixture
def sv_table():
    return AbundanceTable(
        [
            [10, 0, 4, 1],
            [5, 5, 0, 2],
            [1, 2, 3, 4],
            [0, 7, 1, 0],
        ],
        features=["sv1", "sv2", "sv3", "sv4"],
        samples=["a1", "a2", "b1", "b2"],
    )


@pytest.fixture
def taxonomy():
    return Taxonomy({
        "sv1": TaxonomyAssignment(BACILLUS),
        "sv2": TaxonomyAssignment(BACILLUS),
        "sv3": TaxonomyAssignment(FIRMICUTES_ONLY),
        "sv4": TaxonomyAssignment(ESCHERICHIA),
    })


@pytest.fixture
def replicate_groups():
    return SampleGroup({"a1": "A", "a2": "A", "b1": "B", "b2": "B"})


@pytest.fixture
def random_counts():
    rng = np.random.default_rng(42)
    values = rng.poisson(20, size=(12, 6)).astype(float)
    values[3, :] = 0
    values[:, 2] = 0
    return AbundanceTable(
        values,
        features=[f"sv{i}" for i in range(12)],
        samples=[f"s{i}" for i in range(6)],
    )


@pytest.fixture
def metadata():
    return pd.DataFrame(
        {
            "sample_type": ["sample", "sample", "sample", "sample"],
            "dilution": ["1:1", "1:1", "1:100", "1:100"],
        },
        index=pd.Index(["a1", "a2", "b1", "b2"], name="#sampleid"),
    )
