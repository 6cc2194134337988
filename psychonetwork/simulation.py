"""
Simulation helpers

예제 실행과 테스트를 위한 합성 데이터 생성 함수:
- 5요인 구조의 리커트 응답 (bfi 문항 이름)
- 알려진 precision 행렬을 갖는 다변량 정규 데이터 (GGM)
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from scipy import stats

from .config import DEFAULT_FACTOR_ITEMS
from .estimator import pcor_from_precision

logger = logging.getLogger(__name__)


def simulate_five_factor_data(n: int = 1000,
                              factor_items: Optional[Dict[str, List[str]]] = None,
                              loading: float = 0.7,
                              factor_corr: float = 0.2,
                              n_categories: int = 6,
                              missing_rate: float = 0.0,
                              seed: Optional[int] = None) -> pd.DataFrame:
    """
    요인 구조를 갖는 리커트 응답 생성

    문항 = loading * 요인 + 오차 를 표준정규 분위수로 n_categories 범주에 나눕니다.

    Args:
        n: 응답자 수
        factor_items: 요인 → 문항 리스트 (기본: bfi 25문항)
        loading: 표준화 요인부하량
        factor_corr: 요인간 상관
        n_categories: 리커트 범주 수 (1 ~ n_categories)
        missing_rate: 무작위 결측 비율
        seed: 랜덤 시드

    Returns:
        pd.DataFrame: 응답자 × 문항
    """
    if not 0 < loading < 1:
        raise ValueError(f"loading은 0과 1 사이여야 합니다: {loading}")
    if not 0 <= missing_rate < 1:
        raise ValueError(f"missing_rate는 0 이상 1 미만이어야 합니다: {missing_rate}")

    factor_items = factor_items if factor_items is not None else DEFAULT_FACTOR_ITEMS
    rng = np.random.default_rng(seed)

    n_factors = len(factor_items)
    phi = np.full((n_factors, n_factors), factor_corr)
    np.fill_diagonal(phi, 1.0)
    factors = rng.multivariate_normal(np.zeros(n_factors), phi, size=n)

    cut_points = stats.norm.ppf(np.linspace(0, 1, n_categories + 1)[1:-1])
    error_sd = np.sqrt(1 - loading ** 2)

    columns = {}
    for k, items in enumerate(factor_items.values()):
        for item in items:
            latent = loading * factors[:, k] + error_sd * rng.standard_normal(n)
            columns[item] = np.digitize(latent, cut_points) + 1.0

    data = pd.DataFrame(columns)
    if missing_rate > 0:
        mask = rng.random(data.shape) < missing_rate
        data = data.mask(mask)

    logger.debug(f"5요인 합성 데이터 생성: {data.shape}")
    return data


def chain_precision(p: int = 4, strength: float = 0.4) -> np.ndarray:
    """
    사슬 구조(A - B - C - D ...) precision 행렬

    인접 노드만 조건부 의존이고 나머지 편상관은 0입니다.
    """
    if not 0 < strength < 0.5:
        raise ValueError(f"양정치를 위해 strength는 0과 0.5 사이여야 합니다: {strength}")
    precision = np.eye(p)
    for i in range(p - 1):
        precision[i, i + 1] = precision[i + 1, i] = -strength
    return precision


def precision_to_partial_correlation(precision: np.ndarray,
                                     columns: Optional[List[str]] = None) -> pd.DataFrame:
    """precision 행렬에 대응하는 모집단 편상관 행렬"""
    precision = np.asarray(precision, dtype=float)
    columns = columns or [f"V{i + 1}" for i in range(precision.shape[0])]
    return pd.DataFrame(pcor_from_precision(precision), index=columns, columns=columns)


def simulate_ggm_data(precision: np.ndarray, n: int = 1000,
                      columns: Optional[List[str]] = None,
                      seed: Optional[int] = None) -> pd.DataFrame:
    """
    precision 행렬이 주어진 가우시안 그래픽 모형 데이터 생성

    Args:
        precision: 양정치 precision 행렬
        n: 표본 수
        columns: 변수 이름
        seed: 랜덤 시드

    Returns:
        pd.DataFrame: n × p 데이터
    """
    precision = np.asarray(precision, dtype=float)
    if not np.allclose(precision, precision.T):
        raise ValueError("precision 행렬이 대칭이 아닙니다")
    if np.any(np.linalg.eigvalsh(precision) <= 0):
        raise ValueError("precision 행렬이 양정치가 아닙니다")

    p = precision.shape[0]
    columns = columns or [f"V{i + 1}" for i in range(p)]
    rng = np.random.default_rng(seed)
    covariance = np.linalg.inv(precision)
    values = rng.multivariate_normal(np.zeros(p), covariance, size=n)
    return pd.DataFrame(values, columns=columns)
