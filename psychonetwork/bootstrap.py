"""
네트워크 비모수 부트스트랩 모듈

각 부트스트랩 샘플마다:
1. 응답자(행)를 복원추출로 리샘플링
2. 원 표본과 동일한 설정으로 네트워크 재추정
3. 엣지 가중치 저장

리샘플 간에는 공유 상태가 없으므로 ProcessPoolExecutor로 병렬 처리하고,
모든 샘플이 끝난 뒤 샘플 번호 순으로 모아 엣지별 백분위 신뢰구간을 계산합니다.

⚠️ 신뢰구간은 엣지 가중치에 대해서만 제공합니다.
중심성 지표는 대부분 절댓값을 거쳐 0 아래로 내려갈 수 없어
일반적인 부트스트랩 구간의 대칭성 가정이 성립하지 않습니다.

사용 예제:
    from psychonetwork.bootstrap import bootstrap_network

    result = bootstrap_network(data, n_bootstrap=1000, n_workers=4)
    print(result.yield_summary())
    print(result.edge_summary.head())
"""

import logging
import multiprocessing
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from .centrality import CENTRALITY_MEASURES
from .config import BootstrapConfig, NetworkEstimationConfig
from .estimator import estimate_network
from .network import WeightedNetwork

logger = logging.getLogger(__name__)

CENTRALITY_BOOTSTRAP_WARNING = (
    "중심성 지표의 부트스트랩 신뢰구간은 제공하지 않습니다: "
    "Strength, Closeness 등은 절댓값을 거쳐 0 이하로 내려갈 수 없어 "
    "부트스트랩 구간의 대칭성 가정이 깨집니다. 엣지 가중치 구간만 해석하세요."
)


@dataclass
class BootstrapResult:
    """부트스트랩 결과"""

    sample_network: WeightedNetwork
    edge_summary: pd.DataFrame
    bootstrap_edges: pd.DataFrame
    n_requested: int
    confidence_level: float
    failures: List[Dict[str, Any]] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def n_successful(self) -> int:
        return len(self.bootstrap_edges)

    @property
    def n_failed(self) -> int:
        return self.n_requested - self.n_successful

    @property
    def yield_rate(self) -> float:
        return self.n_successful / self.n_requested if self.n_requested else 0.0

    def yield_summary(self) -> str:
        """예: '950/1000 resamples converged'"""
        return f"{self.n_successful}/{self.n_requested} resamples converged"

    def summarize(self, statistic: str = 'edge') -> pd.DataFrame:
        """
        통계량별 부트스트랩 요약

        Args:
            statistic (str): 'edge'만 지원

        Returns:
            pd.DataFrame: 엣지별 신뢰구간
        """
        if statistic in ('edge', 'edges', 'weight'):
            return self.edge_summary.copy()
        if statistic in CENTRALITY_MEASURES or statistic.lower() in (
                'strength', 'closeness', 'betweenness', 'expectedinfluence', 'centrality'):
            raise ValueError(CENTRALITY_BOOTSTRAP_WARNING)
        raise ValueError(f"지원되지 않는 부트스트랩 통계량: {statistic}")

    def significant_edges(self) -> pd.DataFrame:
        """신뢰구간이 0을 포함하지 않는 엣지"""
        return self.edge_summary[~self.edge_summary['ci_contains_zero']].reset_index(drop=True)


class NetworkBootstrap:
    """네트워크 엣지 가중치 비모수 부트스트랩 클래스"""

    def __init__(self, config: Optional[BootstrapConfig] = None,
                 estimation_config: Optional[NetworkEstimationConfig] = None):
        """
        초기화

        Args:
            config (Optional[BootstrapConfig]): 부트스트랩 설정
            estimation_config (Optional[NetworkEstimationConfig]): 네트워크 추정 설정
                (원 표본과 모든 리샘플에 동일하게 적용)
        """
        self.config = config if config is not None else BootstrapConfig()
        self.estimation_config = (estimation_config if estimation_config is not None
                                  else NetworkEstimationConfig())

        if self.config.n_workers is None:
            self.n_workers = max(1, multiprocessing.cpu_count() - 1)
        else:
            self.n_workers = self.config.n_workers

        logger.info(f"부트스트래핑 설정: {self.config.n_bootstrap}개 샘플, {self.n_workers}개 워커")

    def run(self, data: pd.DataFrame, groups: Optional[Dict[str, str]] = None) -> BootstrapResult:
        """
        부트스트랩 실행

        Args:
            data (pd.DataFrame): 관측 행렬
            groups (Optional[Dict[str, str]]): 노드 → 그룹

        Returns:
            BootstrapResult: 엣지별 신뢰구간과 성공/실패 집계
        """
        estimator_kwargs = self.estimation_config.estimator_kwargs()

        # 원 표본 네트워크 (비교 기준)
        sample_network = estimate_network(data, groups=groups, **estimator_kwargs)

        values = data.to_numpy(dtype=float)
        columns = list(data.columns)
        worker_args = [
            (i, values, columns, estimator_kwargs, self.config.random_seed)
            for i in range(self.config.n_bootstrap)
        ]

        start_time = time.time()
        outcomes = self._run_parallel_bootstrap(worker_args)
        elapsed = time.time() - start_time

        # 완료 순서와 무관하게 샘플 번호 순으로 집계
        outcomes.sort(key=lambda r: r['sample_idx'])
        successes = [r for r in outcomes if r['success']]
        failures = [{'sample_idx': r['sample_idx'], 'error': r['error']}
                    for r in outcomes if not r['success']]

        logger.info(f"부트스트래핑 완료: 성공 {len(successes)}/{self.config.n_bootstrap}, "
                    f"실패 {len(failures)}, 소요 시간 {elapsed:.1f}초")

        if not successes:
            raise RuntimeError("모든 부트스트랩 샘플이 실패했습니다")
        if failures:
            logger.warning(f"실패한 리샘플 {len(failures)}개는 집계에서 제외합니다")

        labels = sample_network.edge_labels()
        bootstrap_edges = pd.DataFrame(
            np.vstack([r['edges'] for r in successes]),
            index=[r['sample_idx'] for r in successes],
            columns=labels,
        )
        bootstrap_edges.index.name = 'sample_idx'

        edge_summary = self._calculate_confidence_intervals(sample_network, bootstrap_edges)

        return BootstrapResult(
            sample_network=sample_network,
            edge_summary=edge_summary,
            bootstrap_edges=bootstrap_edges,
            n_requested=self.config.n_bootstrap,
            confidence_level=self.config.confidence_level,
            failures=failures,
            elapsed_seconds=elapsed,
        )

    def _run_parallel_bootstrap(self, worker_args: List[Tuple]) -> List[Dict]:
        """
        병렬 부트스트래핑 실행

        Args:
            worker_args: 워커 함수 인자 리스트

        Returns:
            샘플별 결과 리스트 (실패 기록 포함)
        """
        outcomes = []
        show_progress = self.config.show_progress

        if self.n_workers > 1:
            with ProcessPoolExecutor(max_workers=self.n_workers) as executor:
                futures = [executor.submit(_bootstrap_worker, args) for args in worker_args]
                iterator = as_completed(futures)
                if show_progress:
                    iterator = tqdm(iterator, total=len(futures), desc="Bootstrap")
                for future in iterator:
                    outcomes.append(future.result())
        else:
            iterator = tqdm(worker_args, desc="Bootstrap") if show_progress else worker_args
            for args in iterator:
                outcomes.append(_bootstrap_worker(args))

        return outcomes

    def _calculate_confidence_intervals(self, sample_network: WeightedNetwork,
                                        bootstrap_edges: pd.DataFrame) -> pd.DataFrame:
        """
        엣지별 백분위 신뢰구간 계산

        Args:
            sample_network (WeightedNetwork): 원 표본 네트워크
            bootstrap_edges (pd.DataFrame): 리샘플 × 엣지 가중치

        Returns:
            pd.DataFrame: 원 표본 가중치 순으로 정렬된 엣지 요약
        """
        alpha = 1 - self.config.confidence_level
        lower_percentile = (alpha / 2) * 100
        upper_percentile = (1 - alpha / 2) * 100

        values = bootstrap_edges.to_numpy()
        n_boot = values.shape[0]
        nodes = sample_network.nodes
        n = len(nodes)
        pairs = [(nodes[i], nodes[j]) for i in range(n) for j in range(i + 1, n)]

        summary = pd.DataFrame({
            'edge': bootstrap_edges.columns,
            'node1': [p[0] for p in pairs],
            'node2': [p[1] for p in pairs],
            'sample': sample_network.edge_vector(),
            'mean': values.mean(axis=0),
            'std': values.std(axis=0, ddof=1) if n_boot > 1 else np.zeros(values.shape[1]),
            'lower': np.percentile(values, lower_percentile, axis=0),
            'upper': np.percentile(values, upper_percentile, axis=0),
            'prop_nonzero': (values != 0).mean(axis=0),
        })
        summary['ci_contains_zero'] = (summary['lower'] <= 0) & (summary['upper'] >= 0)

        return summary.sort_values('sample', kind='mergesort').reset_index(drop=True)


def _bootstrap_worker(args: Tuple) -> Dict[str, Any]:
    """
    부트스트랩 워커 함수 (병렬 처리용)

    Args:
        args: (sample_idx, values, columns, estimator_kwargs, random_seed)

    Returns:
        {'sample_idx', 'success', 'edges'} 또는 실패 시 {'sample_idx', 'success', 'error'}
    """
    sample_idx, values, columns, estimator_kwargs, random_seed = args
    try:
        rng = np.random.default_rng(random_seed + sample_idx)
        n = values.shape[0]
        resampled = pd.DataFrame(values[rng.integers(0, n, size=n)], columns=columns)

        network = estimate_network(resampled, **estimator_kwargs)
        return {'sample_idx': sample_idx, 'success': True, 'edges': network.edge_vector()}

    except Exception as e:
        logger.warning(f"부트스트랩 샘플 {sample_idx} 실패: {e}")
        return {'sample_idx': sample_idx, 'success': False, 'error': str(e)}


def bootstrap_network(data: pd.DataFrame,
                      n_bootstrap: int = 1000,
                      n_workers: Optional[int] = None,
                      confidence_level: float = 0.95,
                      random_seed: int = 42,
                      show_progress: bool = True,
                      estimation_config: Optional[NetworkEstimationConfig] = None,
                      groups: Optional[Dict[str, str]] = None) -> BootstrapResult:
    """
    네트워크 부트스트랩 편의 함수

    Args:
        data: 관측 행렬
        n_bootstrap: 부트스트랩 샘플 수
        n_workers: 병렬 작업 수 (None이면 CPU 코어 수 - 1)
        confidence_level: 신뢰수준
        random_seed: 랜덤 시드
        show_progress: 진행 상황 표시
        estimation_config: 네트워크 추정 설정
        groups: 노드 → 그룹

    Returns:
        BootstrapResult
    """
    config = BootstrapConfig(
        n_bootstrap=n_bootstrap,
        n_workers=n_workers,
        confidence_level=confidence_level,
        random_seed=random_seed,
        show_progress=show_progress,
    )
    return NetworkBootstrap(config, estimation_config).run(data, groups=groups)
