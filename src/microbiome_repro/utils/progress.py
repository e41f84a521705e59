# ===================================== IMPORTS ====================================== #

# Standard Library Imports
from datetime import timedelta

# Third-Party Imports
from rich.progress import (
    BarColumn, Progress, ProgressColumn, SpinnerColumn, Task, TextColumn
)
from rich.text import Text

# Local Imports
from microbiome_repro import constants

# ============================== CUSTOM PROGRESS COLUMNS ============================= #

class MofNCompleteColumn(ProgressColumn):
    """Renders completed count/total (e.g., '3/10')"""

    def render(self, task: Task) -> Text:
        return Text(
            f"{task.completed}/{task.total}".rjust(10),
            style=constants.DEFAULT_M_OF_N_COMPLETE_STYLE,
            justify="right"
        )


class TimeElapsedColumn(ProgressColumn):
    """Renders time elapsed."""

    def render(self, task: Task) -> Text:
        elapsed = task.finished_time if task.finished else task.elapsed
        if elapsed is None:
            return Text("-:--:--", style=constants.DEFAULT_TIME_ELAPSED_STYLE)
        delta = timedelta(seconds=max(0, int(elapsed)))
        return Text(str(delta), style=constants.DEFAULT_TIME_ELAPSED_STYLE)

# ==================================== FUNCTIONS ===================================== #

def format_task_desc(description: str) -> str:
    """Pad or truncate a task description to the shared progress text width."""
    n = constants.DEFAULT_PROGRESS_TEXT_N
    return description[:n].ljust(n)


def get_progress_bar(transient: bool = False) -> Progress:
    return Progress(
        SpinnerColumn(finished_text="✔", style=constants.DEFAULT_FINISHED_STYLE),
        TextColumn(
            "[progress.description]{task.description}",
            style=constants.DEFAULT_DESCRIPTION_STYLE
        ),
        BarColumn(
            bar_width=constants.DEFAULT_BAR_WIDTH,
            complete_style=constants.DEFAULT_BAR_COLUMN_COMPLETE_STYLE,
            finished_style=constants.DEFAULT_FINISHED_STYLE
        ),
        TextColumn(
            "[progress.percentage]{task.percentage:>3.0f}%",
            style=constants.DEFAULT_PROGRESS_PERCENTAGE_STYLE
        ),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        transient=transient
    )
