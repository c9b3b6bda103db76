"""
Cubical H0 Persistence Package
==============================

Per-image 0-dimensional persistent homology summaries for folders of
grayscale images. Each image is resized to a fixed grid, turned into a
sublevel-set cubical filtration, and its connected-component persistence
diagram is reduced to robust statistics.

Core Modules:
    - image_normalizer: decode, grayscale, invert, resize, clamp
    - cubical_filtration: H0 diagram via a pluggable HomologyEngine (gudhi / union-find)
    - diagram_summary: counts, quantiles and moments of finite intervals
    - image_analyzer: one image -> one AnalysisResult record
    - batch_runner: directory listing and (parallel) batch analysis
    - results_output: DataFrame formatter, export and cross-image summary

Quick Start:
    >>> from cubical_h0 import AnalysisConfig, analyze_directory, results_to_dataframe, save_results_dataframe
    >>>
    >>> config = AnalysisConfig(target_size=(256, 256), cutoff=0.0, invert=False, workers=4)
    >>> batch = analyze_directory('images', config)
    >>>
    >>> df = results_to_dataframe(batch.results)
    >>> save_results_dataframe(df, 'results/h0_persistence_summary.csv')

Conventions:
    - Sublevel filtration: dark pixels are born first (use invert for bright features)
    - Elder rule on merges; ties are left to the homology engine
    - Population std, linear-interpolation quantiles
    - No finite intervals -> NaN statistics, never an error
"""

__version__ = "1.0.0"

from .batch_runner import BatchResult, analyze_directory, analyze_files, list_image_files
from .config_loader import DEFAULT_IMAGE_EXTENSIONS, AnalysisConfig, load_config
from .cubical_filtration import (
    GudhiCubicalEngine,
    HomologyEngine,
    PersistenceDiagram,
    UnionFindEngine,
    diagram_h0,
    get_engine,
)
from .diagram_summary import DiagramSummary, summarize
from .errors import (
    ConfigError,
    DecodeError,
    DegenerateInputError,
    H0AnalysisError,
    InputNotFoundError,
)
from .image_analyzer import RESULT_COLUMNS, AnalysisResult, analyze, analyze_with_config
from .image_normalizer import invert_intensity, normalize
from .results_output import (
    load_results_dataframe,
    overall_summary,
    results_to_dataframe,
    save_results_dataframe,
)

__all__ = [
    # Main API
    'normalize',
    'diagram_h0',
    'summarize',
    'analyze',
    'analyze_directory',
    'results_to_dataframe',
    'save_results_dataframe',
    'load_results_dataframe',
    'overall_summary',

    # Records and configuration
    'AnalysisConfig',
    'AnalysisResult',
    'BatchResult',
    'DiagramSummary',
    'PersistenceDiagram',
    'RESULT_COLUMNS',
    'DEFAULT_IMAGE_EXTENSIONS',
    'load_config',

    # Advanced components
    'HomologyEngine',
    'GudhiCubicalEngine',
    'UnionFindEngine',
    'get_engine',
    'analyze_files',
    'analyze_with_config',
    'invert_intensity',
    'list_image_files',

    # Errors
    'H0AnalysisError',
    'InputNotFoundError',
    'DecodeError',
    'DegenerateInputError',
    'ConfigError',
]
