"""
Weighted Network Module

이 모듈은 상관/편상관 가중치 행렬과 엣지 리스트 사이의 변환,
그리고 분석 결과를 담는 읽기 전용 WeightedNetwork 클래스를 제공합니다.

- pruning으로 0이 된 엣지는 엣지 리스트, networkx 그래프, 중심성 계산 어디에도 포함되지 않습니다.
- thresholding은 visible_edges()로 표시용 엣지만 고르며 저장된 행렬은 바꾸지 않습니다.
"""

import logging
from typing import Dict, List, Optional

import networkx as nx
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

EDGELIST_COLUMNS = ['from', 'to', 'weight']


def correlation_matrix(data: pd.DataFrame, method: str = 'pearson') -> pd.DataFrame:
    """
    상관계수 행렬 계산

    Args:
        data (pd.DataFrame): 관측 행렬
        method (str): 'pearson', 'spearman', 'kendall'

    Returns:
        pd.DataFrame: 대각선이 1인 대칭 상관계수 행렬
    """
    if data.shape[0] < 3:
        raise ValueError(f"상관계수 계산에 필요한 관측치가 부족합니다: {data.shape[0]}")

    sd = data.std(ddof=1)
    zero_var = sd.index[np.isclose(sd.fillna(0.0).values, 0.0)].tolist()
    if zero_var:
        raise ValueError(f"분산이 0인 문항은 상관계수를 정의할 수 없습니다: {zero_var}")

    corr = data.corr(method=method)
    values = corr.to_numpy(copy=True)
    if not np.all(np.isfinite(values)):
        raise ValueError("상관계수 행렬에 NaN/Inf가 포함되어 있습니다")

    # 부동소수점 오차 보정
    values = np.clip((values + values.T) / 2.0, -1.0, 1.0)
    np.fill_diagonal(values, 1.0)
    return pd.DataFrame(values, index=corr.index, columns=corr.columns)


def matrix_to_edgelist(matrix: pd.DataFrame, directed: bool = False,
                       include_zero: bool = False) -> pd.DataFrame:
    """
    가중치 행렬을 엣지 리스트로 변환

    무방향 그래프는 순서 없는 쌍마다 한 행(상삼각), 방향 그래프는 양방향 모두를 포함합니다.
    자기 루프는 제외합니다.

    Args:
        matrix (pd.DataFrame): 정방 가중치 행렬
        directed (bool): 방향 그래프 여부
        include_zero (bool): 가중치 0인 엣지 포함 여부

    Returns:
        pd.DataFrame: from, to, weight 컬럼의 엣지 리스트
    """
    _validate_square(matrix)
    nodes = list(matrix.index)
    values = matrix.to_numpy(dtype=float)

    rows = []
    n = len(nodes)
    for i in range(n):
        start = 0 if directed else i + 1
        for j in range(start, n):
            if i == j:
                continue
            weight = values[i, j]
            if weight == 0 and not include_zero:
                continue
            rows.append((nodes[i], nodes[j], float(weight)))

    return pd.DataFrame(rows, columns=EDGELIST_COLUMNS)


def edgelist_to_matrix(edgelist: pd.DataFrame, nodes: Optional[List[str]] = None,
                       directed: bool = False) -> pd.DataFrame:
    """
    엣지 리스트를 가중치 행렬로 변환

    무방향 그래프에서 같은 쌍이 여러 번(양방향 포함) 나오면 가중치를 합산하여
    대칭으로 배치합니다.

    Args:
        edgelist (pd.DataFrame): from, to, weight 컬럼
        nodes (Optional[List[str]]): 노드 순서 (기본: 등장 순서)
        directed (bool): 방향 그래프 여부

    Returns:
        pd.DataFrame: 가중치 행렬 (대각선 0)
    """
    missing_cols = [c for c in EDGELIST_COLUMNS if c not in edgelist.columns]
    if missing_cols:
        raise ValueError(f"엣지 리스트에 필요한 컬럼이 없습니다: {missing_cols}")

    if (edgelist['from'] == edgelist['to']).any():
        raise ValueError("엣지 리스트에 자기 루프가 있습니다")

    if nodes is None:
        nodes = list(pd.unique(pd.concat([edgelist['from'], edgelist['to']], ignore_index=True)))
    index = {node: k for k, node in enumerate(nodes)}

    unknown = set(edgelist['from']).union(edgelist['to']) - set(index)
    if unknown:
        raise ValueError(f"노드 목록에 없는 엣지 끝점: {sorted(map(str, unknown))}")

    values = np.zeros((len(nodes), len(nodes)))
    for source, target, weight in edgelist[EDGELIST_COLUMNS].itertuples(index=False):
        i, j = index[source], index[target]
        if directed:
            values[i, j] += weight
        else:
            if i > j:
                i, j = j, i
            values[i, j] += weight

    if not directed:
        values = values + np.triu(values, k=1).T

    return pd.DataFrame(values, index=nodes, columns=nodes)


def _validate_square(matrix: pd.DataFrame) -> None:
    if matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"정방 행렬이 아닙니다: {matrix.shape}")
    if list(matrix.index) != list(matrix.columns):
        raise ValueError("행과 열의 노드 이름이 일치하지 않습니다")


class WeightedNetwork:
    """가중치 무방향(또는 방향) 네트워크 - 생성 후 읽기 전용"""

    def __init__(self, weights: pd.DataFrame,
                 estimator: str = 'cor',
                 n_observations: Optional[int] = None,
                 groups: Optional[Dict[str, str]] = None,
                 p_values: Optional[pd.DataFrame] = None,
                 pruned: Optional[pd.DataFrame] = None,
                 directed: bool = False,
                 info: Optional[Dict] = None):
        """
        WeightedNetwork 초기화

        Args:
            weights (pd.DataFrame): 가중치 행렬 (대각선은 0으로 저장)
            estimator (str): 추정방법 이름
            n_observations (Optional[int]): 추정에 사용된 표본 수
            groups (Optional[Dict[str, str]]): 노드 → 그룹 (색상용)
            p_values (Optional[pd.DataFrame]): 엣지별 p값
            pruned (Optional[pd.DataFrame]): pruning으로 0이 된 엣지 표시 (bool)
            directed (bool): 방향 그래프 여부
            info (Optional[Dict]): 추정 관련 부가 정보
        """
        _validate_square(weights)
        values = weights.to_numpy(dtype=float, copy=True)
        if not np.all(np.isfinite(values)):
            raise ValueError("가중치 행렬에 NaN/Inf가 포함되어 있습니다")
        if not directed and not np.allclose(values, values.T, atol=1e-10):
            raise ValueError("무방향 네트워크의 가중치 행렬이 대칭이 아닙니다")
        np.fill_diagonal(values, 0.0)
        values.flags.writeable = False

        self._nodes = [str(node) for node in weights.index]
        self._values = values
        self.estimator = estimator
        self.n_observations = n_observations
        self.directed = directed
        self.groups = dict(groups) if groups else {}
        self._p_values = p_values.copy() if p_values is not None else None
        self._pruned = pruned.copy() if pruned is not None else None
        self.info = dict(info) if info else {}

    @property
    def nodes(self) -> List[str]:
        return list(self._nodes)

    @property
    def weights(self) -> pd.DataFrame:
        """가중치 행렬 복사본"""
        return pd.DataFrame(self._values.copy(), index=self._nodes, columns=self._nodes)

    @property
    def p_values(self) -> Optional[pd.DataFrame]:
        return self._p_values.copy() if self._p_values is not None else None

    @property
    def pruned(self) -> Optional[pd.DataFrame]:
        return self._pruned.copy() if self._pruned is not None else None

    @property
    def is_pruned(self) -> bool:
        return self._pruned is not None

    @property
    def n_edges(self) -> int:
        """0이 아닌 엣지 수"""
        nonzero = int(np.count_nonzero(self._values))
        return nonzero if self.directed else nonzero // 2

    @property
    def density(self) -> float:
        n = len(self._nodes)
        possible = n * (n - 1) if self.directed else n * (n - 1) / 2
        return self.n_edges / possible if possible else 0.0

    def edgelist(self, include_zero: bool = False) -> pd.DataFrame:
        """엣지 리스트 (자기 루프 제외)"""
        return matrix_to_edgelist(self.weights, directed=self.directed, include_zero=include_zero)

    def edge_labels(self) -> List[str]:
        """모든 노드 쌍의 엣지 라벨 ('A1--A2') - 상삼각 순서"""
        n = len(self._nodes)
        return [f"{self._nodes[i]}--{self._nodes[j]}" for i in range(n) for j in range(i + 1, n)]

    def edge_vector(self) -> np.ndarray:
        """edge_labels() 순서의 상삼각 가중치 벡터 (0 포함)"""
        return self._values[np.triu_indices(len(self._nodes), k=1)].copy()

    def visible_edges(self, threshold: float = 0.0) -> pd.DataFrame:
        """
        thresholding: |w| >= threshold인 엣지만 표시용으로 선택

        저장된 가중치 행렬은 변경되지 않습니다.

        Args:
            threshold (float): 표시할 최소 절댓값

        Returns:
            pd.DataFrame: 표시할 엣지 리스트
        """
        if threshold < 0:
            raise ValueError(f"threshold는 0 이상이어야 합니다: {threshold}")
        edges = self.edgelist()
        return edges[edges['weight'].abs() >= threshold].reset_index(drop=True)

    def to_networkx(self) -> nx.Graph:
        """
        networkx 그래프로 변환

        엣지 속성: weight(부호 포함), abs_weight, distance(= 1/|w|).
        가중치 0인 엣지는 추가하지 않습니다.
        """
        graph = nx.DiGraph() if self.directed else nx.Graph()
        for node in self._nodes:
            graph.add_node(node, group=self.groups.get(node))
        for source, target, weight in self.edgelist().itertuples(index=False):
            graph.add_edge(source, target, weight=weight, abs_weight=abs(weight),
                           distance=1.0 / abs(weight))
        return graph

    def summary(self) -> Dict:
        """네트워크 요약 정보"""
        edges = self.edgelist()
        summary = {
            'estimator': self.estimator,
            'n_nodes': len(self._nodes),
            'n_edges': self.n_edges,
            'density': round(self.density, 4),
            'n_observations': self.n_observations,
            'n_positive': int((edges['weight'] > 0).sum()),
            'n_negative': int((edges['weight'] < 0).sum()),
            'mean_abs_weight': round(float(edges['weight'].abs().mean()), 4) if len(edges) else 0.0,
        }
        if self._pruned is not None:
            summary['n_pruned'] = int(np.triu(self._pruned.to_numpy(dtype=bool), k=1).sum())
        summary.update(self.info)
        return summary

    def __repr__(self) -> str:
        return (f"WeightedNetwork(estimator={self.estimator!r}, nodes={len(self._nodes)}, "
                f"edges={self.n_edges})")


def build_correlation_network(data: pd.DataFrame,
                              groups: Optional[Dict[str, str]] = None,
                              method: str = 'pearson') -> WeightedNetwork:
    """
    상관계수 네트워크 생성 (pruning 없음)

    Args:
        data (pd.DataFrame): 관측 행렬
        groups (Optional[Dict[str, str]]): 노드 → 그룹
        method (str): 상관계수 방법

    Returns:
        WeightedNetwork: 상관계수 네트워크
    """
    corr = correlation_matrix(data, method=method)
    network = WeightedNetwork(corr, estimator='cor', n_observations=len(data), groups=groups,
                              info={'cor_method': method})
    logger.info(f"상관 네트워크 생성: {network.n_edges}개 엣지")
    return network
