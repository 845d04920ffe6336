"""
Neighbourhood Visualization

Scatter plots of a 2-feature reference dataset with the test point and its
selected neighbours highlighted.
"""

import io
import logging
from typing import Optional, Sequence

import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

from knn_service.datasets import Dataset
from knn_service.errors import DimensionMismatch
from knn_service.utils import LOGGER_NAME


logger = logging.getLogger(LOGGER_NAME)

CLASS_PALETTE = {0: '#1f77b4', 1: '#d62728'}


def plot_neighbourhood(
    dataset: Dataset,
    test_point: Sequence[float],
    neighbour_indices: Sequence[int],
    predicted_class: Optional[int] = None,
    title: Optional[str] = None
) -> plt.Figure:
    """
    Plot a dataset, a test point and the neighbours that classified it.

    Args:
        dataset: Reference dataset with exactly 2 features
        test_point: Classified point
        neighbour_indices: Indices of the selected neighbours, nearest first
        predicted_class: Class assigned to the test point (used for its colour)
        title: Plot title (default: derived from dataset name and k)

    Returns:
        Matplotlib figure

    Raises:
        DimensionMismatch: If the dataset or test point is not 2-dimensional
    """
    if dataset.dimensionality != 2:
        raise DimensionMismatch(2, dataset.dimensionality)

    point = np.asarray(test_point, dtype=np.float64)
    if point.size != 2:
        raise DimensionMismatch(2, point.size)

    fig, ax = plt.subplots(figsize=(8, 6))

    sns.scatterplot(
        x=dataset.features[:, 0],
        y=dataset.features[:, 1],
        hue=dataset.labels,
        palette=CLASS_PALETTE,
        s=80,
        ax=ax
    )

    # Dashed link from the test point to each selected neighbour
    for i in neighbour_indices:
        neighbour = dataset.features[i]
        ax.plot(
            [point[0], neighbour[0]],
            [point[1], neighbour[1]],
            'k--',
            alpha=0.5,
            linewidth=1
        )

    ax.scatter(
        dataset.features[list(neighbour_indices), 0],
        dataset.features[list(neighbour_indices), 1],
        s=220,
        facecolors='none',
        edgecolors='black',
        linewidths=1.5,
        label='Neighbours'
    )

    ax.scatter(
        [point[0]],
        [point[1]],
        marker='*',
        s=300,
        color=CLASS_PALETTE.get(predicted_class, 'gray'),
        edgecolors='black',
        label='Test point'
    )

    ax.set_xlabel('Feature 1')
    ax.set_ylabel('Feature 2')
    ax.set_title(title or f"{dataset.name}: {len(neighbour_indices)} nearest neighbours")
    ax.legend(title='Class', loc='best')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    return fig


def figure_to_png(fig: plt.Figure) -> bytes:
    """Render a figure to PNG bytes and close it."""
    buf = io.BytesIO()
    fig.savefig(buf, format='png', bbox_inches='tight', dpi=100)
    plt.close(fig)
    buf.seek(0)
    return buf.read()
