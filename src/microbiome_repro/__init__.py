"""
Reproducibility toolkit for a 16S amplicon dilution-series study: contaminant
filtering, taxonomic rollup and normalization of ASV tables, plus thin wrappers
around the downstream statistics.
"""

from microbiome_repro.errors import InvalidInputError
from microbiome_repro.table import AbundanceTable
from microbiome_repro.taxonomy import Rank, Taxonomy, TaxonomyAssignment
from microbiome_repro.groups import SampleGroup
from microbiome_repro.normalization import normalize, normalize_rows
from microbiome_repro.contaminants import classify, remove_contaminants
from microbiome_repro.rollup import rollup, rollup_ranks

__version__ = "0.1.0"

__all__ = [
    "AbundanceTable",
    "InvalidInputError",
    "Rank",
    "SampleGroup",
    "Taxonomy",
    "TaxonomyAssignment",
    "classify",
    "normalize",
    "normalize_rows",
    "remove_contaminants",
    "rollup",
    "rollup_ranks",
]
