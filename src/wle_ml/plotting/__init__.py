"""Plotting: exploratory data figures and evaluation figures (matplotlib, Agg backend)."""

from .evaluation import plot_confusion_heatmap, plot_meta_importance, plot_model_comparison
from .exploration import (
    plot_class_distribution,
    plot_feature_boxplots,
    plot_missingness,
    top_variable_columns,
)

__all__ = [
    "plot_class_distribution",
    "plot_missingness",
    "plot_feature_boxplots",
    "top_variable_columns",
    "plot_confusion_heatmap",
    "plot_model_comparison",
    "plot_meta_importance",
]
