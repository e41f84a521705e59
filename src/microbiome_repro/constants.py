from pathlib import Path

# ==================================================================================== #
# PROGRESS BAR
# ==================================================================================== #

# Total character width of the progress bar text
DEFAULT_PROGRESS_TEXT_N: int = 65
# Color of the progress bar description text
DEFAULT_DESCRIPTION_STYLE: str = "white"
# Width of the progress bar
DEFAULT_BAR_WIDTH: int = 40
# Color of the filled/complete portion of the progress bar
DEFAULT_BAR_COLUMN_COMPLETE_STYLE: str = "honeydew2"
# Color used when the progress bar is finished
DEFAULT_FINISHED_STYLE: str = "dark_cyan"
# Color of the percentage complete text (e.g., "85%")
DEFAULT_PROGRESS_PERCENTAGE_STYLE: str = "honeydew2"
# Color of the "X of Y complete" text (e.g., "42 of 65")
DEFAULT_M_OF_N_COMPLETE_STYLE: str = "honeydew2"
# Color of the time elapsed display (e.g., "E: 00:01:25")
DEFAULT_TIME_ELAPSED_STYLE: str = "light_sky_blue1"

# ==================================================================================== #
# SETTINGS
# ==================================================================================== #
# Go up two levels
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "references" / "config.yaml"
DEFAULT_LOG_DIR = "logs"

# ==================================================================================== #
# METADATA
# ==================================================================================== #
DEFAULT_META_ID_COLUMN = '#sampleid'
DEFAULT_CONTROL_COLUMN = 'sample_type'
DEFAULT_CONTROL_VALUE = 'negative_control'
DEFAULT_GROUP_COLUMN = 'dilution'
DEFAULT_BIOMASS_COLUMN = 'qpcr_copies'

# ==================================================================================== #
# TAXONOMY
# ==================================================================================== #
# Strings that mean "no assignment at this rank". The first entry doubles as the
# marker prefixed to labels that fell back to an ancestor rank.
UNASSIGNED_LABELS = ("unidentified", "NA", "", "uncultured")
UNASSIGNED_MARKER = UNASSIGNED_LABELS[0]

# QIIME taxonomy string prefixes, in rank order
QIIME_RANK_PREFIXES = ('d', 'p', 'c', 'o', 'f', 'g', 's')

DEFAULT_ROLLUP_RANKS = ['Phylum', 'Class', 'Order', 'Family', 'Genus', 'SV']

# ==================================================================================== #
# NORMALIZATION
# ==================================================================================== #
NORMALIZE_TOLERANCE: float = 1e-13
MAX_NORMALIZE_ITERATIONS: int = 100
DEFAULT_TARGET_SUM: float = 1.0
PERCENT_TARGET_SUM: float = 100.0
DEFAULT_LABEL_DELIMITER = '|'

# ==================================================================================== #
# CONTAMINANTS
# ==================================================================================== #
DEFAULT_CONTAMINANT_THRESHOLD_PCT: float = 10.0

# ==================================================================================== #
# STATISTICS
# ==================================================================================== #
DEFAULT_METRIC = 'braycurtis'
DEFAULT_N_PCOA = None
DEFAULT_PERMUTATIONS = 999
# pingouin.intraclass_corr needs at least this many rated targets
MIN_ICC_FEATURES = 5
