"""
Network Estimation Module (PMRF)

이 모듈은 관측 행렬로부터 pairwise Markov random field 네트워크를 추정합니다.

지원하는 추정방법:
- 'cor'   : 상관계수 네트워크
- 'pcor'  : 편상관 네트워크 (상관행렬 역행렬 기반)
- 'glasso': EBIC 기준으로 penalty를 선택하는 graphical lasso (scikit-learn)

prune='sig'는 유의하지 않은 엣지를 정확히 0으로 만들어 분석 모형 자체를 바꿉니다.
표시용 thresholding은 WeightedNetwork.visible_edges()와 시각화 단계에서만 이루어집니다.
"""

import logging
import warnings
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.covariance import graphical_lasso
from sklearn.exceptions import ConvergenceWarning

from .config import (
    NetworkEstimationConfig, VALID_ADJUSTMENTS, VALID_ESTIMATORS, VALID_PRUNE_MODES
)
from .network import WeightedNetwork, correlation_matrix

logger = logging.getLogger(__name__)

ESTIMATORS = VALID_ESTIMATORS

# 상관행렬 조건수가 이 값을 넘으면 역행렬이 수치적으로 의미 없다고 판단
MAX_CONDITION_NUMBER = 1e12
# 이 값보다 작은 precision 원소는 0 (glasso 희소성 판정)
ZERO_TOLERANCE = 1e-10


def partial_correlation_matrix(corr: pd.DataFrame) -> pd.DataFrame:
    """
    상관행렬로부터 편상관 행렬 계산: -P_ij / sqrt(P_ii * P_jj)

    Args:
        corr (pd.DataFrame): 상관계수 행렬

    Returns:
        pd.DataFrame: 대각선이 0인 편상관 행렬
    """
    _check_invertible(corr)
    precision = np.linalg.inv(corr.to_numpy(dtype=float))
    return pd.DataFrame(pcor_from_precision(precision), index=corr.index, columns=corr.columns)


def pcor_from_precision(precision: np.ndarray) -> np.ndarray:
    diag = np.sqrt(np.diag(precision))
    pcor = -precision / np.outer(diag, diag)
    pcor = np.clip((pcor + pcor.T) / 2.0, -1.0, 1.0)
    np.fill_diagonal(pcor, 0.0)
    pcor[np.abs(pcor) < ZERO_TOLERANCE] = 0.0
    return pcor


def correlation_pvalues(weights: pd.DataFrame, n_observations: int,
                        n_controls: int = 0) -> pd.DataFrame:
    """
    (편)상관계수의 양측 t 검정 p값

    t = r * sqrt(df / (1 - r^2)), df = n - 2 - n_controls

    Args:
        weights (pd.DataFrame): 상관 또는 편상관 행렬
        n_observations (int): 표본 수
        n_controls (int): 통제 변수 수 (편상관이면 p - 2)

    Returns:
        pd.DataFrame: p값 행렬 (대각선 0)
    """
    df = n_observations - 2 - n_controls
    if df < 1:
        raise ValueError(
            f"유의성 검정 자유도가 부족합니다: n={n_observations}, 통제변수={n_controls}"
        )

    r = weights.to_numpy(dtype=float).copy()
    np.fill_diagonal(r, 0.0)
    with np.errstate(divide='ignore', invalid='ignore'):
        t_values = r * np.sqrt(df / (1.0 - r ** 2))
    p = 2.0 * stats.t.sf(np.abs(t_values), df)
    p[np.isclose(np.abs(r), 1.0)] = 0.0
    np.fill_diagonal(p, 0.0)
    return pd.DataFrame(p, index=weights.index, columns=weights.columns)


def adjust_pvalues(p_values: pd.DataFrame, method: str = 'none') -> pd.DataFrame:
    """
    상삼각 p값에 다중비교 보정 적용

    Args:
        p_values (pd.DataFrame): p값 행렬
        method (str): 'none', 'bonferroni', 'fdr' (Benjamini-Hochberg)

    Returns:
        pd.DataFrame: 보정된 p값 행렬
    """
    if method not in VALID_ADJUSTMENTS:
        raise ValueError(f"지원되지 않는 다중비교 보정: {method}")
    if method == 'none':
        return p_values.copy()

    values = p_values.to_numpy(dtype=float)
    n = values.shape[0]
    iu = np.triu_indices(n, k=1)
    upper = values[iu]

    if method == 'bonferroni':
        adjusted = np.minimum(upper * len(upper), 1.0)
    else:
        adjusted = stats.false_discovery_control(upper, method='bh')

    result = np.zeros_like(values)
    result[iu] = adjusted
    result = result + result.T
    return pd.DataFrame(result, index=p_values.index, columns=p_values.columns)


def _check_degenerate(corr: pd.DataFrame) -> None:
    """완전 공선 문항쌍 검사"""
    values = corr.to_numpy(dtype=float)
    n = values.shape[0]
    iu = np.triu_indices(n, k=1)
    collinear = np.isclose(np.abs(values[iu]), 1.0, atol=1e-10)
    if collinear.any():
        pairs = [f"{corr.index[i]}--{corr.index[j]}"
                 for i, j in zip(iu[0][collinear], iu[1][collinear])]
        raise ValueError(f"완전 공선인 문항쌍이 있습니다: {pairs}")


def _check_invertible(corr: pd.DataFrame) -> None:
    """상관행렬 특이성(공선성) 검사"""
    values = corr.to_numpy(dtype=float)
    rank = np.linalg.matrix_rank(values)
    if rank < values.shape[0]:
        raise ValueError(
            f"상관행렬이 특이행렬입니다 (rank {rank} < {values.shape[0]}): 공선 문항을 확인하세요"
        )
    condition = np.linalg.cond(values)
    if not np.isfinite(condition) or condition > MAX_CONDITION_NUMBER:
        raise ValueError(f"상관행렬의 조건수가 너무 큽니다 ({condition:.3g}): 공선 문항을 확인하세요")


def _ebic(sample_corr: np.ndarray, precision: np.ndarray, n: int, gamma: float) -> Tuple[float, int]:
    """Extended BIC: -2L + E log n + 4 gamma E log p"""
    p = sample_corr.shape[0]
    sign, logdet = np.linalg.slogdet(precision)
    if sign <= 0:
        raise FloatingPointError("precision 행렬이 양정치가 아닙니다")
    loglik = (n / 2.0) * (logdet - np.trace(sample_corr @ precision))
    n_edges = int(np.sum(np.abs(np.triu(precision, k=1)) > ZERO_TOLERANCE))
    ebic = -2.0 * loglik + n_edges * np.log(n) + 4.0 * n_edges * gamma * np.log(p)
    return float(ebic), n_edges


def ebic_glasso(corr: pd.DataFrame, n_observations: int, gamma: float = 0.5,
                n_lambda: int = 100, lambda_min_ratio: float = 0.01,
                max_iter: int = 500) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """
    EBIC 기준 graphical lasso

    penalty 경로 λ_max = max|R_ij| ~ λ_min_ratio·λ_max (로그 간격)에서
    EBIC가 최소인 모형을 선택합니다. 동률이면 더 희소한(λ가 큰) 모형을 택합니다.
    수렴하지 않은 penalty는 건너뛰고 기록합니다.

    Args:
        corr (pd.DataFrame): 상관계수 행렬
        n_observations (int): 표본 수
        gamma (float): EBIC 하이퍼파라미터
        n_lambda (int): penalty 개수
        lambda_min_ratio (float): 최소/최대 penalty 비율
        max_iter (int): glasso 최대 반복

    Returns:
        Tuple[pd.DataFrame, Dict[str, Any]]: 편상관 행렬과 선택 정보
    """
    sample = corr.to_numpy(dtype=float)
    offdiag = np.abs(sample[np.triu_indices(sample.shape[0], k=1)])
    lambda_max = float(offdiag.max()) if offdiag.size else 0.0
    if lambda_max <= 0:
        raise ValueError("모든 상관계수가 0이어서 glasso penalty 경로를 만들 수 없습니다")

    lambdas = np.exp(np.linspace(np.log(lambda_max), np.log(lambda_max * lambda_min_ratio),
                                 n_lambda))

    best = None
    failures = []
    for lam in lambdas:
        try:
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always", ConvergenceWarning)
                _, precision = graphical_lasso(sample, alpha=float(lam), max_iter=max_iter)
            if any(issubclass(w.category, ConvergenceWarning) for w in caught):
                raise FloatingPointError("glasso가 최대 반복 내에 수렴하지 않았습니다")
            ebic, n_edges = _ebic(sample, precision, n_observations, gamma)
        except (FloatingPointError, ValueError, np.linalg.LinAlgError) as e:
            failures.append({'lambda': float(lam), 'error': str(e)})
            logger.debug(f"glasso 실패 (lambda={lam:.4g}): {e}")
            continue

        if best is None or ebic < best['ebic']:
            best = {'lambda': float(lam), 'ebic': ebic, 'n_edges': n_edges,
                    'precision': precision}

    if failures:
        logger.warning(f"glasso penalty {len(failures)}/{n_lambda}개 수렴 실패 (제외)")
    if best is None:
        raise RuntimeError("모든 glasso penalty에서 추정이 실패했습니다")

    pcor = pd.DataFrame(pcor_from_precision(best['precision']), index=corr.index,
                        columns=corr.columns)
    info = {
        'lambda': best['lambda'],
        'ebic': round(best['ebic'], 4),
        'gamma': gamma,
        'n_lambda': n_lambda,
        'n_failed_lambdas': len(failures),
    }
    logger.info(f"EBICglasso 선택: lambda={best['lambda']:.4f}, 엣지 {best['n_edges']}개")
    return pcor, info


def estimate_network(data: pd.DataFrame,
                     estimator: str = 'pcor',
                     prune: Optional[str] = None,
                     alpha: float = 0.05,
                     adjust: str = 'none',
                     cor_method: str = 'pearson',
                     groups: Optional[Dict[str, str]] = None,
                     gamma: float = 0.5,
                     n_lambda: int = 100,
                     lambda_min_ratio: float = 0.01) -> WeightedNetwork:
    """
    네트워크 추정

    Args:
        data (pd.DataFrame): 관측 행렬 (결측 없음)
        estimator (str): 'cor', 'pcor', 'glasso'
        prune (Optional[str]): None 또는 'sig' (유의하지 않은 엣지를 0으로)
        alpha (float): 유의수준
        adjust (str): 다중비교 보정 ('none', 'bonferroni', 'fdr')
        cor_method (str): 상관계수 방법
        groups (Optional[Dict[str, str]]): 노드 → 그룹
        gamma (float): EBIC 하이퍼파라미터 (glasso)
        n_lambda (int): penalty 개수 (glasso)
        lambda_min_ratio (float): 최소/최대 penalty 비율 (glasso)

    Returns:
        WeightedNetwork: 추정된 네트워크
    """
    if estimator not in VALID_ESTIMATORS:
        raise ValueError(f"지원되지 않는 네트워크 추정방법: {estimator}")
    if prune not in VALID_PRUNE_MODES:
        raise ValueError(f"지원되지 않는 pruning 방법: {prune}")
    if prune == 'sig' and estimator == 'glasso':
        raise ValueError("glasso 추정에는 유의성 pruning을 적용할 수 없습니다")
    if not 0 < alpha < 1:
        raise ValueError(f"alpha는 0과 1 사이여야 합니다: {alpha}")
    if data.isna().any().any():
        raise ValueError("관측 행렬에 결측치가 있습니다 (listwise 삭제 후 사용하세요)")

    n_obs, n_nodes = data.shape
    corr = correlation_matrix(data, method=cor_method)
    _check_degenerate(corr)

    info: Dict[str, Any] = {'cor_method': cor_method}
    p_values = None

    if estimator == 'cor':
        values = corr.to_numpy(dtype=float, copy=True)
        np.fill_diagonal(values, 0.0)
        weights = pd.DataFrame(values, index=corr.index, columns=corr.columns)
        p_values = correlation_pvalues(weights, n_obs)
    elif estimator == 'pcor':
        weights = partial_correlation_matrix(corr)
        p_values = correlation_pvalues(weights, n_obs, n_controls=n_nodes - 2)
    else:
        weights, glasso_info = ebic_glasso(corr, n_obs, gamma=gamma, n_lambda=n_lambda,
                                           lambda_min_ratio=lambda_min_ratio)
        info.update(glasso_info)

    if not np.all(np.isfinite(weights.to_numpy())):
        raise ValueError("추정된 가중치에 NaN/Inf가 있습니다 (퇴화 행렬)")

    pruned_mask = None
    if prune == 'sig':
        adjusted = adjust_pvalues(p_values, adjust)
        mask = adjusted.to_numpy() >= alpha
        np.fill_diagonal(mask, False)
        values = weights.to_numpy(dtype=float).copy()
        values[mask] = 0.0
        weights = pd.DataFrame(values, index=weights.index, columns=weights.columns)
        pruned_mask = pd.DataFrame(mask, index=weights.index, columns=weights.columns)
        p_values = adjusted
        info.update({'alpha': alpha, 'adjust': adjust})
        logger.info(f"유의성 pruning (alpha={alpha}, adjust={adjust}): "
                    f"{int(np.triu(mask, k=1).sum())}개 엣지 제거")

    info['prune'] = prune
    network = WeightedNetwork(weights, estimator=estimator, n_observations=n_obs,
                              groups=groups, p_values=p_values, pruned=pruned_mask, info=info)
    logger.info(f"네트워크 추정 완료 ({estimator}): 노드 {n_nodes}개, 엣지 {network.n_edges}개")
    return network


def estimate_from_config(data: pd.DataFrame, config: NetworkEstimationConfig,
                         groups: Optional[Dict[str, str]] = None) -> WeightedNetwork:
    """NetworkEstimationConfig로 네트워크 추정"""
    return estimate_network(data, groups=groups, **config.estimator_kwargs())
