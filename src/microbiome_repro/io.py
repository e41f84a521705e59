# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from pathlib import Path
from typing import Union

# Third-Party Imports
import h5py
import pandas as pd
from biom import load_table
from biom.table import Table

# Local Imports
from microbiome_repro import constants
from microbiome_repro.errors import InvalidInputError
from microbiome_repro.table import AbundanceTable
from microbiome_repro.taxonomy import Taxonomy

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('microbiome_repro')

# =============================== HELPER FUNCTIONS ==================================== #

def _require_file(path: Union[str, Path], what: str) -> Path:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{what} not found: {path}")
    return path


def _separator(path: Path) -> str:
    return ',' if path.suffix.lower() == '.csv' else '\t'

# ==================================== FUNCTIONS ===================================== #

def import_table_biom(biom_path: Union[str, Path]) -> Table:
    """
    Load a BIOM table, trying HDF5 first and falling back to JSON/TSV BIOM.

    Args:
        biom_path: Path to .biom file.

    Returns:
        BIOM Table object.
    """
    biom_path = _require_file(biom_path, "BIOM table")
    try:
        with h5py.File(biom_path, 'r') as f:
            return Table.from_hdf5(f)
    except OSError:
        logger.debug(f"{biom_path.name} is not HDF5 BIOM; loading as JSON/TSV")
        return load_table(str(biom_path))


def import_abundance_table(path: Union[str, Path]) -> AbundanceTable:
    """
    Load a feature × sample count table.

    ``.biom`` files go through :func:`import_table_biom`; anything else is read as
    delimited text with feature IDs in the first column and one column per sample.
    Missing counts are read as zero.
    """
    path = _require_file(path, "Abundance table")
    if path.suffix.lower() == '.biom':
        table = AbundanceTable.from_biom(import_table_biom(path))
    else:
        df = pd.read_csv(path, sep=_separator(path), index_col=0)
        df.index = df.index.astype(str)
        df.columns = df.columns.astype(str)
        table = AbundanceTable.from_dataframe(df.fillna(0))
    logger.info(f"Loaded {path.name}: {table.shape[0]} features × {table.shape[1]} samples")
    return table


def import_metadata_tsv(
    tsv_path: Union[str, Path],
    sample_id_column: str = constants.DEFAULT_META_ID_COLUMN
) -> pd.DataFrame:
    """
    Load a sample metadata table indexed by sample ID.

    Column names are lower-cased, matching how the analysis refers to them.

    Raises:
        FileNotFoundError: If the path doesn't exist.
        InvalidInputError: Missing sample ID column or duplicate sample IDs.
    """
    tsv_path = _require_file(tsv_path, "Metadata file")
    df = pd.read_csv(tsv_path, sep=_separator(tsv_path))
    df.columns = df.columns.str.lower()
    sample_id_column = sample_id_column.lower()

    if sample_id_column not in df.columns:
        raise InvalidInputError(
            f"Sample ID column '{sample_id_column}' not found in {tsv_path.name}"
        )
    df[sample_id_column] = df[sample_id_column].astype(str)
    duplicated = df[sample_id_column].duplicated()
    if duplicated.any():
        raise InvalidInputError(
            f"Duplicate sample IDs in metadata: {df.loc[duplicated, sample_id_column].tolist()[:10]}"
        )
    df = df.set_index(sample_id_column)
    logger.info(f"Loaded {tsv_path.name}: {len(df)} samples, {df.shape[1]} columns")
    return df


def import_taxonomy(path: Union[str, Path]) -> Taxonomy:
    """
    Load per-feature taxonomy.

    Accepts either a rank-column table (feature ID first, then Kingdom … Species,
    as produced from BLAST hits) or a QIIME ``taxonomy.tsv`` with ``Feature ID``
    and ``Taxon`` columns.
    """
    path = _require_file(path, "Taxonomy file")
    df = pd.read_csv(path, sep=_separator(path), dtype=str, keep_default_na=False)
    if 'Taxon' in df.columns:
        id_col = 'Feature ID' if 'Feature ID' in df.columns else df.columns[0]
        taxonomy = Taxonomy.from_qiime(df.set_index(id_col)['Taxon'])
    else:
        taxonomy = Taxonomy.from_dataframe(df.set_index(df.columns[0]))
    logger.info(f"Loaded taxonomy for {len(taxonomy)} features from {path.name}")
    return taxonomy


def write_table_tsv(
    table: Union[AbundanceTable, pd.DataFrame],
    path: Union[str, Path]
) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = table.to_dataframe() if isinstance(table, AbundanceTable) else table
    df.to_csv(path, sep='\t')
    logger.debug(f"Wrote {path}")
    return path
