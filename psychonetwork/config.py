"""
Network Analysis Configuration Module

이 모듈은 네트워크 심리측정 분석을 위한 설정과 기본 요인 구조를 관리합니다.
요인분석, 네트워크 추정, 부트스트랩, 시각화 설정을 데이터클래스로 제공합니다.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# 프로젝트 루트 디렉토리
PROJECT_ROOT = Path(__file__).parent.parent

# 5요인 성격검사 (bfi) 문항 구조
DEFAULT_FACTOR_ITEMS: Dict[str, List[str]] = {
    'Agreeableness': ['A1', 'A2', 'A3', 'A4', 'A5'],
    'Conscientiousness': ['C1', 'C2', 'C3', 'C4', 'C5'],
    'Extraversion': ['E1', 'E2', 'E3', 'E4', 'E5'],
    'Neuroticism': ['N1', 'N2', 'N3', 'N4', 'N5'],
    'Openness': ['O1', 'O2', 'O3', 'O4', 'O5'],
}

# 역문항 (bfi 채점 키 기준)
DEFAULT_REVERSE_ITEMS: List[str] = ['A1', 'C4', 'C5', 'E1', 'E2', 'O2', 'O5']

# 척도 범위 (6점 리커트)
DEFAULT_SCALE_RANGE: Tuple[int, int] = (1, 6)

# 그래프 범례용 요인 라벨
FACTOR_LABELS = {
    'Agreeableness': 'Agreeableness',
    'Conscientiousness': 'Conscientiousness',
    'Extraversion': 'Extraversion',
    'Neuroticism': 'Neuroticism',
    'Openness': 'Openness',
}

# 결과 디렉토리 설정
RESULTS_CONFIG = {
    'output_dir': PROJECT_ROOT / 'results' / 'network_analysis',
    'figures_subdir': 'figures',
    'tables_subdir': 'tables',
    'report_name': 'network_analysis_report.md',
}

# 로그 설정
LOGGING_CONFIG = {
    'log_dir': PROJECT_ROOT / 'logs',
    'log_file': 'network_analysis.log',
    'log_level': 'INFO',
    'log_format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
}

VALID_ESTIMATORS = ('cor', 'pcor', 'glasso')
VALID_PRUNE_MODES = (None, 'sig')
VALID_ADJUSTMENTS = ('none', 'bonferroni', 'fdr')
VALID_COR_METHODS = ('pearson', 'spearman', 'kendall')


@dataclass
class FactorAnalysisConfig:
    """확인적 요인분석(CFA) 설정을 저장하는 데이터클래스"""

    # 분석 설정
    estimator: str = 'MLW'  # Maximum Likelihood with Wishart
    optimizer: str = 'SLSQP'

    # 모델 적합도 설정
    calculate_fit_indices: bool = True

    # 출력 설정
    standardized: bool = True
    significance_level: float = 0.05

    def __post_init__(self):
        """초기화 후 검증"""
        valid_estimators = ['MLW', 'ML', 'GLS', 'WLS', 'ULS']
        if self.estimator not in valid_estimators:
            raise ValueError(f"지원되지 않는 추정방법: {self.estimator}")

        valid_optimizers = ['SLSQP', 'L-BFGS-B', 'trust-constr']
        if self.optimizer not in valid_optimizers:
            raise ValueError(f"지원되지 않는 최적화 방법: {self.optimizer}")


@dataclass
class NetworkEstimationConfig:
    """네트워크(PMRF) 추정 설정"""

    estimator: str = 'pcor'
    prune: Optional[str] = 'sig'
    alpha: float = 0.05
    adjust: str = 'none'
    cor_method: str = 'pearson'

    # EBICglasso 설정
    gamma: float = 0.5
    n_lambda: int = 100
    lambda_min_ratio: float = 0.01

    def __post_init__(self):
        if self.estimator not in VALID_ESTIMATORS:
            raise ValueError(f"지원되지 않는 네트워크 추정방법: {self.estimator}")
        if self.prune not in VALID_PRUNE_MODES:
            raise ValueError(f"지원되지 않는 pruning 방법: {self.prune}")
        if self.prune == 'sig' and self.estimator == 'glasso':
            raise ValueError("glasso 추정에는 유의성 pruning을 적용할 수 없습니다")
        if not 0 < self.alpha < 1:
            raise ValueError(f"alpha는 0과 1 사이여야 합니다: {self.alpha}")
        if self.adjust not in VALID_ADJUSTMENTS:
            raise ValueError(f"지원되지 않는 다중비교 보정: {self.adjust}")
        if self.cor_method not in VALID_COR_METHODS:
            raise ValueError(f"지원되지 않는 상관계수 방법: {self.cor_method}")
        if self.gamma < 0:
            raise ValueError(f"EBIC gamma는 0 이상이어야 합니다: {self.gamma}")
        if self.n_lambda < 2 or not 0 < self.lambda_min_ratio < 1:
            raise ValueError("lambda 경로 설정이 올바르지 않습니다")

    def estimator_kwargs(self) -> Dict:
        """estimate_network()에 전달할 인자 딕셔너리"""
        return {
            'estimator': self.estimator,
            'prune': self.prune,
            'alpha': self.alpha,
            'adjust': self.adjust,
            'cor_method': self.cor_method,
            'gamma': self.gamma,
            'n_lambda': self.n_lambda,
            'lambda_min_ratio': self.lambda_min_ratio,
        }


@dataclass
class BootstrapConfig:
    """부트스트랩 설정"""

    n_bootstrap: int = 1000
    n_workers: Optional[int] = None  # None이면 CPU 코어 수 - 1
    confidence_level: float = 0.95
    random_seed: int = 42
    show_progress: bool = True

    def __post_init__(self):
        if self.n_bootstrap < 1:
            raise ValueError(f"부트스트랩 샘플 수는 1 이상이어야 합니다: {self.n_bootstrap}")
        if not 0 < self.confidence_level < 1:
            raise ValueError(f"신뢰수준은 0과 1 사이여야 합니다: {self.confidence_level}")
        if self.n_workers is not None and self.n_workers < 1:
            raise ValueError(f"워커 수는 1 이상이어야 합니다: {self.n_workers}")


@dataclass
class VisualizationConfig:
    """시각화 설정"""

    figsize: Tuple[int, int] = (10, 8)
    dpi: int = 300
    layout: str = 'spring'
    threshold: float = 0.0
    node_size: int = 900
    edge_width_scale: float = 6.0
    positive_color: str = '#1b9e3e'
    negative_color: str = '#d62728'
    palette: str = 'Set2'
    layout_seed: int = 42

    def __post_init__(self):
        if self.layout not in ('spring', 'circular', 'kamada_kawai'):
            raise ValueError(f"지원되지 않는 레이아웃: {self.layout}")
        if self.threshold < 0:
            raise ValueError(f"threshold는 0 이상이어야 합니다: {self.threshold}")


@dataclass
class NetworkAnalysisConfig:
    """전체 분석 파이프라인 설정"""

    factor_items: Dict[str, List[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_FACTOR_ITEMS.items()}
    )
    reverse_items: List[str] = field(default_factory=list)
    scale_range: Tuple[int, int] = DEFAULT_SCALE_RANGE

    run_cfa: bool = True
    run_bootstrap: bool = True

    factor_analysis: FactorAnalysisConfig = field(default_factory=FactorAnalysisConfig)
    estimation: NetworkEstimationConfig = field(default_factory=NetworkEstimationConfig)
    bootstrap: BootstrapConfig = field(default_factory=BootstrapConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)

    output_dir: Optional[Path] = None

    def __post_init__(self):
        if not self.factor_items:
            raise ValueError("요인-문항 구조가 비어있습니다")
        items = self.items
        duplicated = sorted({item for item in items if items.count(item) > 1})
        if duplicated:
            raise ValueError(f"여러 요인에 중복 배정된 문항: {duplicated}")
        unknown = [item for item in self.reverse_items if item not in items]
        if unknown:
            raise ValueError(f"요인 구조에 없는 역문항: {unknown}")

    @property
    def items(self) -> List[str]:
        """요인 순서대로 정렬된 전체 문항 리스트"""
        return [item for items in self.factor_items.values() for item in items]

    @property
    def groups(self) -> Dict[str, str]:
        """문항 → 요인 이름 매핑 (그래프 색상용)"""
        return get_item_groups(self.factor_items)


def get_item_groups(factor_items: Dict[str, List[str]]) -> Dict[str, str]:
    """
    문항별 요인 그룹 매핑 생성

    Args:
        factor_items (Dict[str, List[str]]): 요인 → 문항 리스트

    Returns:
        Dict[str, str]: 문항 → 요인 이름
    """
    return {item: factor for factor, items in factor_items.items() for item in items}


def setup_logging(log_to_file: bool = False, level: Optional[str] = None) -> None:
    """
    로깅 설정

    Args:
        log_to_file (bool): 로그 파일에도 기록할지 여부
        level (Optional[str]): 로그 레벨 (기본: LOGGING_CONFIG)
    """
    handlers = [logging.StreamHandler()]
    if log_to_file:
        log_dir = Path(LOGGING_CONFIG['log_dir'])
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(log_dir / LOGGING_CONFIG['log_file'], encoding='utf-8')
        )

    logging.basicConfig(
        level=level or LOGGING_CONFIG['log_level'],
        format=LOGGING_CONFIG['log_format'],
        handlers=handlers,
    )


def get_default_config() -> NetworkAnalysisConfig:
    """기본 설정을 반환하는 편의 함수"""
    return NetworkAnalysisConfig()


def create_custom_config(**kwargs) -> NetworkAnalysisConfig:
    """사용자 정의 설정을 생성하는 편의 함수"""
    return NetworkAnalysisConfig(**kwargs)
