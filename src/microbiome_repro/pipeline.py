"""
Dilution-series reproducibility analysis
----------------------------------------------------------------------------------------
Loads the ASV count table, sample metadata (with qPCR biomass) and BLAST-derived
taxonomy, removes contaminants flagged against the negative controls, rolls the
table up to each configured rank, normalizes it and runs the downstream
statistics on every rank.
"""
# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

# Third-Party Imports
import pandas as pd

# Local Imports
from microbiome_repro import constants
from microbiome_repro.config import get_config
from microbiome_repro.contaminants import classify, control_percentages, remove_contaminants
from microbiome_repro.errors import InvalidInputError
from microbiome_repro.figures import cv_heatmap, ordination_scatter, save_html
from microbiome_repro.groups import SampleGroup
from microbiome_repro.io import (
    import_abundance_table, import_metadata_tsv, import_taxonomy, write_table_tsv
)
from microbiome_repro.logger import setup_logging
from microbiome_repro.normalization import normalize
from microbiome_repro.rollup import rollup_ranks
from microbiome_repro.stats import (
    coefficient_of_variation, distance_matrix, icc, pcoa, permanova, regress_variation,
    within_group_distances
)
from microbiome_repro.table import AbundanceTable

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('microbiome_repro')

METADATA_COLUMN_KEYS = ('sample_id_column', 'control_column', 'group_column', 'biomass_column')

# ==================================== HELPERS ======================================= #

def is_enabled(config: Dict) -> bool:
    return config.get("enabled", False)


def metadata_settings(meta_cfg: Dict) -> Dict:
    """Metadata settings with defaults filled in.

    Column names are lower-cased to match the headers of
    :func:`import_metadata_tsv`.
    """
    settings = {
        'sample_id_column': constants.DEFAULT_META_ID_COLUMN,
        'control_column': constants.DEFAULT_CONTROL_COLUMN,
        'control_value': constants.DEFAULT_CONTROL_VALUE,
        'group_column': constants.DEFAULT_GROUP_COLUMN,
        'biomass_column': constants.DEFAULT_BIOMASS_COLUMN,
    }
    settings.update({k: v for k, v in meta_cfg.items() if v is not None})
    for key in METADATA_COLUMN_KEYS:
        settings[key] = str(settings[key]).lower()
    return settings


def filter_contaminants(
    table: AbundanceTable,
    metadata: pd.DataFrame,
    meta_cfg: Dict,
    cont_cfg: Dict,
    output_dir: Path
) -> AbundanceTable:
    """Drop contaminant features and the control samples they were judged on."""
    sample_types = SampleGroup.from_metadata(metadata, meta_cfg['control_column'])
    controls, true_samples = sample_types.split_controls(
        table.samples, meta_cfg['control_value']
    )
    threshold = cont_cfg.get('threshold_pct', constants.DEFAULT_CONTAMINANT_THRESHOLD_PCT)
    flagged = classify(table, controls, true_samples, threshold)

    pct = control_percentages(table, controls, true_samples).to_frame()
    pct['contaminant'] = pct.index.isin(flagged)
    write_table_tsv(pct, output_dir / 'contaminants.tsv')

    return remove_contaminants(table, flagged).select_samples(true_samples)


def group_biomass(
    metadata: pd.DataFrame,
    groups: SampleGroup,
    samples: list,
    column: str
) -> pd.Series:
    """Mean biomass (e.g. qPCR copies) of the given samples in each group."""
    biomass = pd.to_numeric(metadata[column], errors='coerce')
    return pd.Series({
        group: biomass.reindex(members).mean()
        for group, members in groups.partition(samples).items()
    })


def variation_regressions(
    normalized: AbundanceTable,
    cv: pd.DataFrame,
    biomass: Optional[pd.Series],
    log10: bool
) -> pd.DataFrame:
    """Regress CV on biomass (per group) and on mean abundance (per feature).

    A regression without enough data points is logged and left out.
    """
    pairs = {}
    if biomass is not None:
        pairs['cv_vs_biomass'] = (cv.where(cv > 0).mean(axis=0), biomass)
    abundance = pd.Series(
        normalized.row_sums() / normalized.shape[1], index=list(normalized.features)
    )
    pairs['cv_vs_abundance'] = (cv.mean(axis=1), abundance)

    results = {}
    for name, (variation, covariate) in pairs.items():
        try:
            results[name] = regress_variation(variation, covariate, log10=log10)
        except ValueError as e:
            logger.warning(f"Skipping {name} regression: {e}")
    return pd.DataFrame(results).T

# ================================== PER-RANK STATS ================================== #

def analyse_rank(
    rank_label: str,
    normalized: AbundanceTable,
    metadata: pd.DataFrame,
    groups: SampleGroup,
    biomass: Optional[pd.Series],
    config: Dict,
    output_dir: Path
) -> Dict[str, Any]:
    stats_cfg = config.get('stats', {})
    metric = stats_cfg.get('metric', constants.DEFAULT_METRIC)
    results: Dict[str, Any] = {}

    cv = coefficient_of_variation(normalized, groups)
    write_table_tsv(cv, output_dir / 'cv.tsv')
    results['cv'] = cv

    dm = distance_matrix(normalized, metric=metric)
    distances = within_group_distances(dm, groups)
    distances.to_csv(output_dir / 'within_group_distances.tsv', sep='\t', index=False)
    results['distances'] = distances

    ordination = pcoa(normalized, metric=metric)
    write_table_tsv(ordination.samples, output_dir / 'pcoa.tsv')
    results['pcoa'] = ordination

    group_column = metadata_settings(config.get('metadata', {}))['group_column']
    perm_cfg = stats_cfg.get('permanova', {})
    if is_enabled(perm_cfg):
        res = permanova(
            normalized, metadata, group_column, metric=metric,
            permutations=perm_cfg.get('permutations', constants.DEFAULT_PERMUTATIONS)
        )
        res.to_frame(name=group_column).to_csv(output_dir / 'permanova.tsv', sep='\t')
        logger.info(
            f"{rank_label}: PERMANOVA on {group_column}: "
            f"pseudo-F={res['test statistic']:.3f}, p={res['p-value']:.4f}"
        )
        results['permanova'] = res

    if is_enabled(stats_cfg.get('icc', {})):
        try:
            agreement = icc(normalized, groups)
        except ValueError as e:
            logger.warning(f"{rank_label}: skipping ICC: {e}")
        else:
            agreement.to_csv(output_dir / 'icc.tsv', sep='\t', index=False)
            results['icc'] = agreement

    reg_cfg = stats_cfg.get('regression', {})
    if is_enabled(reg_cfg):
        regression = variation_regressions(normalized, cv, biomass, reg_cfg.get('log10', True))
        write_table_tsv(regression, output_dir / 'regression.tsv')
        results['regression'] = regression

    if is_enabled(config.get('figures', {})):
        save_html(cv_heatmap(cv, title=f"CV ({rank_label})"), output_dir / 'cv_heatmap')
        if ordination.samples.shape[1] >= 2:
            save_html(
                ordination_scatter(ordination, metadata, group_column, title=f"PCoA ({rank_label})"),
                output_dir / 'pcoa'
            )
    return results

# =================================== MAIN WORKFLOW ================================== #

def run_pipeline(config: Dict) -> Dict[str, Dict[str, Any]]:
    """
    Run every stage of the analysis described by ``config``.

    Input problems (``InvalidInputError``) abort the run. Statistics that cannot be
    computed for one rank are logged and that rank is skipped.

    Returns:
        Mapping of rank label to that rank's results.
    """
    data_cfg = config['data']
    meta_cfg = metadata_settings(config.get('metadata', {}))
    output_dir = Path(config.get('output_dir', 'output'))
    output_dir.mkdir(parents=True, exist_ok=True)

    table = import_abundance_table(data_cfg['table'])
    metadata = import_metadata_tsv(data_cfg['metadata'], meta_cfg['sample_id_column'])
    taxonomy = import_taxonomy(data_cfg['taxonomy'])

    cont_cfg = config.get('contaminants', {})
    if is_enabled(cont_cfg):
        table = filter_contaminants(table, metadata, meta_cfg, cont_cfg, output_dir)

    ranks = config.get('rollup', {}).get('ranks', constants.DEFAULT_ROLLUP_RANKS)
    tables = rollup_ranks(
        table, taxonomy, ranks, max_workers=config.get('rollup', {}).get('max_workers')
    )

    groups = SampleGroup.from_metadata(metadata, meta_cfg['group_column'])
    biomass_column = meta_cfg['biomass_column']
    biomass = None
    if biomass_column in metadata.columns:
        biomass = group_biomass(metadata, groups, list(table.samples), biomass_column)
    else:
        logger.warning(
            f"Biomass column '{biomass_column}' not in metadata; "
            f"CV vs biomass regression skipped"
        )
    target_sum = config.get('normalization', {}).get('target_sum', constants.PERCENT_TARGET_SUM)

    results: Dict[str, Dict[str, Any]] = {}
    for rank, rolled in tables.items():
        rank_dir = output_dir / rank.label
        normalized = normalize(rolled, target_sum=target_sum)
        write_table_tsv(rolled, rank_dir / 'counts.tsv')
        write_table_tsv(normalized, rank_dir / 'normalized.tsv')
        logger.info(f"{rank.label}: {len(normalized)} features")
        try:
            results[rank.label] = analyse_rank(
                rank.label, normalized, metadata, groups, biomass, config, rank_dir
            )
        except InvalidInputError:
            raise
        except ValueError as e:
            logger.error(f"Statistics failed for {rank.label}: {e}")
    return results


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--config", default=str(constants.DEFAULT_CONFIG_PATH), help="YAML config file"
    )
    parser.add_argument(
        "--log-dir", default=constants.DEFAULT_LOG_DIR, help="Directory for log files"
    )
    args = parser.parse_args(argv)

    setup_logging(args.log_dir)
    config = get_config(args.config)
    try:
        run_pipeline(config)
    except (InvalidInputError, FileNotFoundError) as e:
        logger.error(f"Analysis aborted: {e}")
        return 1
    logger.info("Analysis complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
