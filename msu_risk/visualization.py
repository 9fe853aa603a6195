"""
visualization.py - Report figures for MSU risk analysis.

Bar charts of the MSU size distribution and of the per-attribute
contributions, plus a combined summary panel.
"""

import logging
from typing import Dict, List, Tuple
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.ticker as ticker
import seaborn as sns

from .statistics import MSUStatistics, NO_MSUS_FOUND

logger = logging.getLogger(__name__)

STYLE_CONFIG = {
    'font.family': 'sans-serif',
    'font.sans-serif': ['Arial', 'Helvetica', 'DejaVu Sans'],
    'font.size': 10,
    'axes.titlesize': 12,
    'axes.labelsize': 10,
    'xtick.labelsize': 9,
    'ytick.labelsize': 9,
    'legend.fontsize': 9,
    'figure.titlesize': 14,
    'figure.dpi': 100,
    'savefig.dpi': 300,
    'savefig.bbox': 'tight',
    'axes.spines.top': False,
    'axes.spines.right': False,
}

# Colorblind-friendly
COLORS = {
    'distribution': '#2E86AB',
    'contribution': '#E94F37',
}


def _annotate_empty(ax) -> None:
    ax.text(0.5, 0.5, NO_MSUS_FOUND, ha='center', va='center',
            transform=ax.transAxes, color='gray')


class Visualizer:
    """Creates figures for MSU statistics."""

    def __init__(
        self,
        output_dir: str = "results/figures",
        figsize: Tuple[float, float] = (7, 5),
        dpi: int = 300
    ):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.figsize = figsize
        self.dpi = dpi

        plt.rcParams.update(STYLE_CONFIG)

        self._figures: Dict[str, plt.Figure] = {}

        logger.info(f"Visualizer initialized, output_dir: {self.output_dir}")

    def _draw_size_distribution(self, ax, statistics: MSUStatistics) -> None:
        frame = statistics.size_distribution_frame()
        if len(frame) > 0:
            sns.barplot(data=frame, x='key_size', y='fraction',
                        color=COLORS['distribution'], ax=ax)
        if statistics.num_keys == 0:
            _annotate_empty(ax)

        ax.set_xlabel('Key Size', fontweight='bold')
        ax.set_ylabel('Fraction of MSUs', fontweight='bold')
        ax.set_ylim(0, 1)
        ax.yaxis.set_major_formatter(ticker.PercentFormatter(xmax=1.0))

    def _draw_contributions(self, ax, statistics: MSUStatistics) -> None:
        frame = statistics.to_frame()
        if len(frame) > 0:
            sns.barplot(data=frame, y='attribute', x='contribution',
                        color=COLORS['contribution'], orient='h', ax=ax)
        if statistics.num_keys == 0:
            _annotate_empty(ax)

        ax.set_xlabel('Contribution', fontweight='bold')
        ax.set_ylabel('Attribute', fontweight='bold')
        ax.xaxis.set_major_formatter(ticker.PercentFormatter(xmax=1.0))

    def plot_key_size_distribution(
        self,
        statistics: MSUStatistics,
        title: str = "Distribution of MSU Sizes"
    ) -> plt.Figure:
        """Fraction of MSUs per key size."""
        fig, ax = plt.subplots(figsize=self.figsize)
        self._draw_size_distribution(ax, statistics)
        ax.set_title(title, fontweight='bold', pad=15)
        ax.grid(True, axis='y', alpha=0.3, linestyle='-', linewidth=0.5)

        plt.tight_layout()

        self._figures['msu_size_distribution'] = fig
        return fig

    def plot_column_contributions(
        self,
        statistics: MSUStatistics,
        title: str = "Attribute Contributions to MSUs"
    ) -> plt.Figure:
        """Horizontal bars of each attribute's share of MSU memberships."""
        height = max(self.figsize[1], 0.3 * statistics.num_columns + 1)
        fig, ax = plt.subplots(figsize=(self.figsize[0], height))
        self._draw_contributions(ax, statistics)
        ax.set_title(title, fontweight='bold', pad=15)
        ax.grid(True, axis='x', alpha=0.3, linestyle='-', linewidth=0.5)

        plt.tight_layout()

        self._figures['msu_column_contributions'] = fig
        return fig

    def plot_summary_panel(
        self,
        statistics: MSUStatistics,
        title: str = "Minimal Sample Uniques"
    ) -> plt.Figure:
        """Multi-panel figure: sizes, contributions and a summary table."""
        fig, (ax1, ax2, ax3) = plt.subplots(1, 3, figsize=(15, 5),
                                            gridspec_kw={'width_ratios': [1, 1.3, 1]})

        self._draw_size_distribution(ax1, statistics)
        ax1.set_title('A) Key Sizes', fontweight='bold')

        self._draw_contributions(ax2, statistics)
        ax2.set_title('B) Attribute Contributions', fontweight='bold')

        ax3.axis('off')
        if statistics.num_keys > 0:
            cells = [
                ['MSUs', f"{statistics.num_keys:,}"],
                ['Average key size', f"{statistics.average_key_size:.2f}"],
                ['Max key length', str(statistics.max_key_length)],
            ]
        else:
            cells = [
                ['MSUs', NO_MSUS_FOUND],
                ['Average key size', NO_MSUS_FOUND],
                ['Max key length', str(statistics.max_key_length)],
            ]
        table = ax3.table(cellText=cells, colLabels=['Statistic', 'Value'],
                          loc='center', cellLoc='center',
                          colColours=['#f0f0f0'] * 2)
        table.auto_set_font_size(False)
        table.set_fontsize(10)
        table.scale(1.2, 1.5)
        ax3.set_title('C) Summary', fontweight='bold', pad=20)

        fig.suptitle(title, fontweight='bold', fontsize=14, y=0.98)
        plt.tight_layout()

        self._figures['msu_summary_panel'] = fig
        return fig

    def save_figure(
        self,
        fig: plt.Figure,
        name: str,
        formats: List[str] = ['pdf', 'png']
    ) -> List[str]:
        """Save figure in multiple formats. Returns list of saved paths."""
        saved_paths = []

        for fmt in formats:
            filepath = self.output_dir / f"{name}.{fmt}"
            fig.savefig(filepath, format=fmt, dpi=self.dpi, bbox_inches='tight',
                        facecolor='white', edgecolor='none')
            saved_paths.append(str(filepath))
            logger.info(f"Saved figure: {filepath}")

        return saved_paths

    def save_all_figures(
        self,
        formats: List[str] = ['pdf', 'png']
    ) -> Dict[str, List[str]]:
        """Save all generated figures. Returns dict of figure names to paths."""
        all_paths = {}

        for name, fig in self._figures.items():
            all_paths[name] = self.save_figure(fig, name, formats)

        logger.info(f"Saved {len(all_paths)} figures to {self.output_dir}")

        return all_paths

    def close_all(self) -> None:
        """Close all figures to free memory."""
        for fig in self._figures.values():
            plt.close(fig)
        self._figures.clear()


def create_report_figures(
    statistics: MSUStatistics,
    output_dir: str = "results/figures",
    formats: List[str] = ['pdf', 'png']
) -> Dict[str, List[str]]:
    """Generate and save all report figures. Returns dict of figure names to paths."""
    viz = Visualizer(output_dir=output_dir)

    viz.plot_key_size_distribution(statistics)
    viz.plot_column_contributions(statistics)
    viz.plot_summary_panel(statistics)

    paths = viz.save_all_figures(formats)
    viz.close_all()

    return paths
