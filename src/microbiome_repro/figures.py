# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from pathlib import Path
from typing import Optional, Union

# Third Party Imports
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from skbio.stats.ordination import OrdinationResults

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('microbiome_repro')

# ================================== FUNCTIONS ======================================= #

def save_html(fig: go.Figure, output_path: Union[str, Path]) -> Path:
    """Write a Plotly figure to HTML, creating parent directories."""
    output_path = Path(output_path).expanduser().resolve().with_suffix('.html')
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.write_html(output_path, include_plotlyjs='cdn')
    logger.debug(f"Saved figure to '{output_path}'")
    return output_path


def cv_heatmap(
    cv: pd.DataFrame,
    title: str = "Coefficient of variation",
    top_n: Optional[int] = 50
) -> go.Figure:
    """
    Heatmap of per-feature CV across groups.

    Args:
        cv:    Features × groups CV table.
        title: Figure title.
        top_n: Keep the ``top_n`` features with the highest mean CV.
    """
    data = cv
    if top_n is not None and len(cv) > top_n:
        order = cv.mean(axis=1).sort_values(ascending=False).index[:top_n]
        data = cv.loc[order]
    fig = px.imshow(
        data,
        labels={'x': 'Group', 'y': 'Feature', 'color': 'CV'},
        color_continuous_scale='Viridis',
        aspect='auto'
    )
    fig.update_layout(title=title)
    return fig


def ordination_scatter(
    ordination: OrdinationResults,
    metadata: pd.DataFrame,
    color_col: str,
    title: str = "PCoA"
) -> go.Figure:
    """First two PCoA axes coloured by a metadata column."""
    coords = ordination.samples.iloc[:, :2]
    x, y = coords.columns
    data = coords.join(metadata[[color_col]], how='left')
    data[color_col] = data[color_col].astype(str)
    explained = ordination.proportion_explained
    fig = px.scatter(
        data.reset_index(),
        x=x,
        y=y,
        color=color_col,
        hover_name=data.index.name or 'index',
        labels={
            x: f"{x} ({explained.iloc[0] * 100:.1f}%)",
            y: f"{y} ({explained.iloc[1] * 100:.1f}%)",
        },
        title=title
    )
    return fig
