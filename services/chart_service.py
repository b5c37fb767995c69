import io

import matplotlib

# Non-interactive backend; charts are only rendered to PNG
matplotlib.use("Agg")

from matplotlib.figure import Figure

from publication_core import year_sort_key
from utils.errors import ChartRenderError
from utils.logging_utils import get_logger, log_exception

_LOGGER = get_logger("chart_service")

CHART_FIGSIZE = (7.2, 3.2)
CHART_DPI = 100
BAR_COLOR = "#4a7bd0"
AXIS_COLOR = "#333333"
TEXT_COLOR = "#111111"


def render_bar_chart(yearly_totals: dict[str, int], title: str | None = None) -> Figure | None:
    """Bar chart of yearly totals, oldest year first. None when there is nothing to draw."""
    years = sorted(yearly_totals, key=year_sort_key)
    if not years:
        return None

    counts = [yearly_totals[y] for y in years]
    positions = list(range(len(years)))

    try:
        # Figure instead of pyplot: Streamlit reruns scripts on several threads
        fig = Figure(figsize=CHART_FIGSIZE, dpi=CHART_DPI)
        ax = fig.subplots()
        bars = ax.bar(positions, counts, color=BAR_COLOR, width=0.8)

        ax.set_xticks(positions)
        ax.set_xticklabels(years, rotation=90 if len(years) > 15 else 0, ha="center")
        ax.set_ylim(0, max(counts) * 1.15 or 1)
        ax.yaxis.get_major_locator().set_params(integer=True)
        for side in ("top", "right"):
            ax.spines[side].set_visible(False)
        for side in ("left", "bottom"):
            ax.spines[side].set_color(AXIS_COLOR)
        if title:
            ax.set_title(title, fontsize=12)

        for bar, value in zip(bars, counts):
            ax.text(
                bar.get_x() + bar.get_width() / 2.0,
                bar.get_height(),
                str(value),
                ha="center",
                va="bottom",
                fontsize=9,
                color=TEXT_COLOR,
            )

        fig.tight_layout()
    except Exception as e:
        app_err = ChartRenderError(detail=f"years={years} counts={counts}", cause=e)
        log_exception("chart.render", app_err, _LOGGER)
        raise app_err from e

    return fig


def render_bar_chart_png(yearly_totals: dict[str, int], title: str | None = None) -> bytes | None:
    fig = render_bar_chart(yearly_totals, title)
    if fig is None:
        return None
    out = io.BytesIO()
    fig.savefig(out, format="png")
    return out.getvalue()
