"""
Centrality Module

가중 네트워크의 노드 중심성 지표를 계산합니다.

- Strength: 연결된 엣지 가중치 절댓값의 합
- Closeness: 최단경로 거리(1/|w|) 평균의 역수
- Betweenness: 다른 노드쌍의 최단경로가 해당 노드를 지나는 횟수
- ExpectedInfluence: 연결된 엣지 가중치(부호 포함)의 합
"""

import logging

import networkx as nx
import numpy as np
import pandas as pd

from .network import WeightedNetwork

logger = logging.getLogger(__name__)

CENTRALITY_MEASURES = ['Strength', 'Closeness', 'Betweenness', 'ExpectedInfluence']


def compute_centrality(network: WeightedNetwork, normalized_betweenness: bool = False) -> pd.DataFrame:
    """
    노드별 중심성 계산

    Args:
        network (WeightedNetwork): 추정된 네트워크
        normalized_betweenness (bool): True이면 betweenness를 가능한 노드쌍 수로 나눈 비율로 반환

    Returns:
        pd.DataFrame: 노드 × (Strength, Closeness, Betweenness, ExpectedInfluence)
    """
    weights = network.weights
    graph = network.to_networkx()

    strength = weights.abs().sum(axis=1)
    expected_influence = weights.sum(axis=1)

    closeness = nx.closeness_centrality(graph, distance='distance', wf_improved=True)
    betweenness = nx.betweenness_centrality(graph, weight='distance',
                                            normalized=normalized_betweenness)

    table = pd.DataFrame({
        'Strength': strength,
        'Closeness': pd.Series(closeness),
        'Betweenness': pd.Series(betweenness),
        'ExpectedInfluence': expected_influence,
    }).reindex(network.nodes)
    table.index.name = 'node'

    isolated = [node for node in network.nodes if graph.degree(node) == 0]
    if isolated:
        logger.info(f"연결이 없는 노드 {len(isolated)}개: {isolated}")

    logger.info(f"중심성 계산 완료: 노드 {len(table)}개")
    return table[CENTRALITY_MEASURES]


def standardize_centrality(table: pd.DataFrame) -> pd.DataFrame:
    """
    중심성 지표를 z 점수로 변환

    분산이 0인 지표는 모두 0으로 둡니다.
    """
    sd = table.std(ddof=1)
    centered = table - table.mean()
    safe_sd = sd.where(~np.isclose(sd.fillna(0.0), 0.0), np.nan)
    return (centered / safe_sd).fillna(0.0)


def centrality_long_format(table: pd.DataFrame, standardized: bool = True) -> pd.DataFrame:
    """
    그래프용 긴 형식 (node, measure, value)

    Args:
        table (pd.DataFrame): compute_centrality() 결과
        standardized (bool): z 점수로 변환 여부

    Returns:
        pd.DataFrame: node, measure, value 컬럼
    """
    source = standardize_centrality(table) if standardized else table
    long_df = source.reset_index().melt(id_vars=source.index.name or 'index',
                                        var_name='measure', value_name='value')
    return long_df.rename(columns={source.index.name or 'index': 'node'})


def rank_nodes(table: pd.DataFrame, measure: str = 'Strength') -> pd.Series:
    """지표 기준 노드 순위 (1 = 가장 중심적)"""
    if measure not in table.columns:
        raise ValueError(f"알 수 없는 중심성 지표: {measure}")
    return table[measure].rank(ascending=False, method='min').astype(int)
