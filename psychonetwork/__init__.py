"""
psychonetwork 패키지

5요인 성격검사 문항 응답에 대한 심리측정 네트워크 분석 튜토리얼 파이프라인입니다.
semopy CFA, 상관/편상관 네트워크 추정, 중심성, 엣지 부트스트랩, 시각화와
Markdown 보고서 생성을 제공합니다.
"""

from .config import (
    NetworkAnalysisConfig,
    FactorAnalysisConfig,
    NetworkEstimationConfig,
    BootstrapConfig,
    VisualizationConfig,
    get_default_config,
    create_custom_config,
    setup_logging,
)
from .data_loader import ItemDataLoader, MissingDataReport, load_observations, describe_items
from .factor_analyzer import SemopyAnalyzer, create_factor_model_spec, run_cfa
from .network import (
    WeightedNetwork,
    correlation_matrix,
    matrix_to_edgelist,
    edgelist_to_matrix,
    build_correlation_network,
)
from .estimator import estimate_network, partial_correlation_matrix, ebic_glasso
from .centrality import compute_centrality, standardize_centrality, centrality_long_format
from .bootstrap import BootstrapResult, NetworkBootstrap, bootstrap_network
from .visualizer import NetworkVisualizer
from .results_exporter import NetworkResultsExporter
from .report import TutorialReport
from .pipeline import NetworkAnalysisPipeline, PipelineResults, run_network_analysis

__version__ = "1.0.0"

__all__ = [
    # Configuration
    'NetworkAnalysisConfig',
    'FactorAnalysisConfig',
    'NetworkEstimationConfig',
    'BootstrapConfig',
    'VisualizationConfig',
    'get_default_config',
    'create_custom_config',
    'setup_logging',

    # Data loading
    'ItemDataLoader',
    'MissingDataReport',
    'load_observations',
    'describe_items',

    # Factor analysis
    'SemopyAnalyzer',
    'create_factor_model_spec',
    'run_cfa',

    # Networks
    'WeightedNetwork',
    'correlation_matrix',
    'matrix_to_edgelist',
    'edgelist_to_matrix',
    'build_correlation_network',
    'estimate_network',
    'partial_correlation_matrix',
    'ebic_glasso',

    # Centrality and bootstrap
    'compute_centrality',
    'standardize_centrality',
    'centrality_long_format',
    'BootstrapResult',
    'NetworkBootstrap',
    'bootstrap_network',

    # Output
    'NetworkVisualizer',
    'NetworkResultsExporter',
    'TutorialReport',

    # Pipeline
    'NetworkAnalysisPipeline',
    'PipelineResults',
    'run_network_analysis',
]
