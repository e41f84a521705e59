"""
Dilution-series reproducibility analysis
----------------------------------------------------------------------------------------
Entry point for running the full analysis from a source checkout without
installing the package.
"""
# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import sys
from pathlib import Path

# Local Imports
parent_dir = Path(__file__).resolve().parent
sys.path.append(str(parent_dir))

from microbiome_repro.pipeline import main

# =================================== MAIN WORKFLOW ================================== #

if __name__ == "__main__":
    sys.exit(main())
