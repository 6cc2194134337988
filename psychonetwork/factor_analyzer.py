"""
Confirmatory Factor Analysis Module using semopy

이 모듈은 semopy를 사용하여 5요인 확인적 요인분석(CFA)을 수행하고
factor loading과 적합도 지수를 계산합니다.
네트워크 분석에 앞선 측정모형 확인 단계이며, 수렴 실패는 치명적 오류가 아니라
경고로 보고됩니다.
"""

import logging
import warnings
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from semopy import Model
from semopy.stats import calc_stats

from .config import DEFAULT_FACTOR_ITEMS, FactorAnalysisConfig

logger = logging.getLogger(__name__)

FIT_INDEX_NAMES = ['chi2', 'DoF', 'chi2 p-value', 'CFI', 'TLI', 'RMSEA', 'GFI', 'AGFI', 'NFI',
                   'AIC', 'BIC']


def create_factor_model_spec(factor_items: Optional[Dict[str, List[str]]] = None) -> str:
    """
    요인-문항 매핑으로 semopy 모델 스펙 생성

    Args:
        factor_items (Optional[Dict[str, List[str]]]): 요인 → 문항 리스트

    Returns:
        str: semopy 모델 스펙 문자열
    """
    factor_items = factor_items if factor_items is not None else DEFAULT_FACTOR_ITEMS
    if not factor_items:
        raise ValueError("요인 구조가 비어있습니다")

    spec_lines = ["# Measurement model"]
    for factor_name, items in factor_items.items():
        if len(items) < 2:
            raise ValueError(f"요인 {factor_name}의 문항이 2개 미만입니다")
        spec_lines.append(f"{factor_name} =~ " + " + ".join(items))

    return "\n".join(spec_lines)


def _indicators_from_spec(model_spec: str) -> List[str]:
    """모델 스펙의 '=~' 우변에서 지표 문항 추출 (순서 유지)"""
    indicators = []
    for line in model_spec.splitlines():
        line = line.split('#', 1)[0]
        if '=~' not in line:
            continue
        for term in line.split('=~', 1)[1].split('+'):
            item = term.split('*')[-1].strip()
            if item and item not in indicators:
                indicators.append(item)
    if not indicators:
        raise ValueError("모델 스펙에 측정모형('=~')이 없습니다")
    return indicators


def interpret_fit_index(index_name: str, value: float) -> str:
    """적합도 지수 해석 (Excellent / Good / Poor)"""
    if value is None or pd.isna(value):
        return ''
    if index_name in ('CFI', 'TLI'):
        return 'Excellent' if value >= 0.95 else 'Good' if value >= 0.90 else 'Poor'
    if index_name in ('RMSEA', 'SRMR'):
        return 'Excellent' if value <= 0.05 else 'Good' if value <= 0.08 else 'Poor'
    return ''


class SemopyAnalyzer:
    """semopy를 사용한 확인적 요인분석 클래스"""

    def __init__(self, config: Optional[FactorAnalysisConfig] = None):
        """
        Semopy Analyzer 초기화

        Args:
            config (Optional[FactorAnalysisConfig]): 분석 설정
        """
        self.config = config if config is not None else FactorAnalysisConfig()
        self.model = None
        self.results = None
        self.fitted = False

    def fit_model(self, data: pd.DataFrame, model_spec: str) -> Dict[str, Any]:
        """
        모델을 적합하고 결과를 반환

        Args:
            data (pd.DataFrame): 관측 행렬
            model_spec (str): semopy 모델 스펙

        Returns:
            Dict[str, Any]: 분석 결과
        """
        logger.info("semopy 모델 적합 시작")

        self.model = Model(model_spec)
        clean_data = self._prepare_data(data, _indicators_from_spec(model_spec))

        logger.info(f"SEM 최적화 시작 (obj={self.config.estimator}, solver={self.config.optimizer})")
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            solver_result = self.model.fit(
                clean_data,
                obj=self.config.estimator,
                solver=self.config.optimizer
            )

        fit_warnings = [str(w.message) for w in caught]
        covariance_warning = self._check_covariance(clean_data)
        if covariance_warning:
            fit_warnings.insert(0, covariance_warning)
        convergence = self._summarize_convergence(solver_result)

        if not convergence['success']:
            message = f"CFA 모델이 수렴하지 않았습니다: {convergence['message']}"
            logger.warning(message)
            fit_warnings.insert(0, message)
        for msg in fit_warnings:
            logger.warning(f"적합 경고: {msg}")

        self.results = self._process_results(clean_data)
        self.results['convergence'] = convergence
        self.results['converged'] = bool(convergence['success'])
        self.results['warnings'] = fit_warnings
        self.fitted = True

        logger.info(f"모델 적합 완료 (수렴 여부: {convergence['success']})")
        return self.results

    def _prepare_data(self, data: pd.DataFrame, observed: List[str]) -> pd.DataFrame:
        """
        모델에 포함된 문항만 선택

        Args:
            data (pd.DataFrame): 관측 행렬
            observed (List[str]): 모델 스펙의 지표 문항

        Returns:
            pd.DataFrame: 모델 변수만 포함한 데이터
        """
        missing = [v for v in observed if v not in data.columns]
        if missing:
            raise ValueError(f"모델 스펙의 문항이 데이터에 없습니다: {missing}")

        clean_data = data[observed].astype(float)
        if clean_data.isna().any().any():
            raise ValueError("CFA 데이터에 결측치가 있습니다 (listwise 삭제 후 사용하세요)")

        zero_var = clean_data.columns[np.isclose(clean_data.var(ddof=1), 0.0)].tolist()
        if zero_var:
            raise ValueError(f"분산이 0인 문항: {zero_var}")

        logger.info(f"CFA 데이터 준비 완료: {clean_data.shape}")
        return clean_data

    @staticmethod
    def _check_covariance(clean_data: pd.DataFrame) -> Optional[str]:
        """
        표본 공분산행렬의 양정치 여부 점검

        양정치가 아니면 semopy는 근사 행렬(nearPD)로 바꿔 적합하므로
        결과 경고에 남길 메시지를 반환합니다.
        """
        eigenvalues = np.linalg.eigvalsh(clean_data.cov().to_numpy())
        if eigenvalues.min() > eigenvalues.max() * 1e-10:
            return None

        n_obs, n_items = clean_data.shape
        reason = (f"표본 수({n_obs})가 문항 수({n_items}) 이하" if n_obs <= n_items
                  else "공선 문항 존재")
        message = (f"표본 공분산행렬이 양정치가 아닙니다 ({reason}, 최소 고유값 {eigenvalues.min():.3g}): "
                   "semopy가 근사 행렬로 적합하므로 추정치는 근사값입니다")
        logger.warning(message)
        return message

    @staticmethod
    def _summarize_convergence(solver_result) -> Dict[str, Any]:
        """semopy SolverResult에서 수렴 정보 추출"""
        n_it = getattr(solver_result, 'n_it', getattr(solver_result, 'nit', None))
        fun = getattr(solver_result, 'fun', None)
        return {
            'success': bool(getattr(solver_result, 'success', False)),
            'n_iterations': int(n_it) if n_it is not None else None,
            'objective': float(fun) if fun is not None else None,
            'message': str(getattr(solver_result, 'message', '')),
        }

    def _process_results(self, clean_data: pd.DataFrame) -> Dict[str, Any]:
        """
        분석 결과 정리

        Args:
            clean_data (pd.DataFrame): 분석에 사용된 데이터

        Returns:
            Dict[str, Any]: 정리된 분석 결과
        """
        results = {
            'model_info': {
                'n_observations': len(clean_data),
                'n_variables': len(clean_data.columns),
                'estimator': self.config.estimator,
                'optimizer': self.config.optimizer
            },
            'factor_loadings': pd.DataFrame(),
            'standardized_loadings': pd.DataFrame(),
            'fit_indices': {},
            'model': self.model,
        }

        params = self.model.inspect(std_est=self.config.standardized)
        loadings = params[params['op'] == '~']
        results['factor_loadings'] = self._format_loadings(loadings, 'Estimate')
        if self.config.standardized and 'Est. Std' in params.columns:
            results['standardized_loadings'] = self._format_loadings(loadings, 'Est. Std')

        if self.config.calculate_fit_indices:
            try:
                results['fit_indices'] = self._format_fit_indices(calc_stats(self.model))
            except Exception as e:
                logger.warning(f"적합도 지수 계산 실패: {e}")

        return results

    def _format_loadings(self, loadings: pd.DataFrame, value_col: str) -> pd.DataFrame:
        """Factor loadings를 Factor/Item/Loading/SE/Z_value/P_value 형태로 포맷"""
        # semopy에서는 lval이 문항, rval이 요인
        formatted = pd.DataFrame({
            'Factor': loadings['rval'].values,
            'Item': loadings['lval'].values,
            'Loading': pd.to_numeric(loadings[value_col], errors='coerce').values,
        })
        if 'Std. Err' in loadings.columns:
            formatted['SE'] = pd.to_numeric(loadings['Std. Err'], errors='coerce').values
        if 'z-value' in loadings.columns:
            formatted['Z_value'] = pd.to_numeric(loadings['z-value'], errors='coerce').values
        if 'p-value' in loadings.columns:
            formatted['P_value'] = pd.to_numeric(loadings['p-value'], errors='coerce').values
            # 기준 문항(1로 고정)은 p값이 없으므로 유의한 것으로 간주하지 않음
            formatted['Significant'] = formatted['P_value'] < self.config.significance_level

        return formatted.round(4)

    @staticmethod
    def _format_fit_indices(fit_stats: pd.DataFrame) -> Dict[str, float]:
        """적합도 지수를 {이름: 값} 형태로 포맷"""
        formatted_fit = {}
        for index in FIT_INDEX_NAMES:
            if index in fit_stats:
                value = fit_stats[index]
                if hasattr(value, 'iloc'):
                    value = value.iloc[0]
                try:
                    formatted_fit[index] = round(float(value), 4)
                except (TypeError, ValueError):
                    logger.warning(f"적합도 지수 변환 실패: {index}={value}")
        return formatted_fit

    def get_fit_indices(self) -> Dict[str, float]:
        """적합도 지수 반환"""
        if not self.fitted:
            raise ValueError("모델이 적합되지 않았습니다")
        return self.results.get('fit_indices', {})

    def get_model_summary(self) -> str:
        """모델 요약 문자열 반환"""
        if not self.fitted:
            raise ValueError("모델이 적합되지 않았습니다")

        info = self.results['model_info']
        convergence = self.results['convergence']
        summary_lines = [
            "=== Confirmatory Factor Analysis Summary ===",
            f"Sample size: {info['n_observations']}",
            f"Variables: {info['n_variables']}",
            f"Estimator: {info['estimator']}",
            f"Converged: {convergence['success']} ({convergence['n_iterations']} iterations)",
        ]

        fit_indices = self.get_fit_indices()
        if fit_indices:
            summary_lines.append("Fit Indices:")
            for index, value in fit_indices.items():
                note = interpret_fit_index(index, value)
                summary_lines.append(f"  {index}: {value}" + (f" ({note})" if note else ""))

        return "\n".join(summary_lines)


def run_cfa(data: pd.DataFrame,
            factor_items: Optional[Dict[str, List[str]]] = None,
            config: Optional[FactorAnalysisConfig] = None) -> Dict[str, Any]:
    """
    확인적 요인분석을 수행하는 편의 함수

    Args:
        data (pd.DataFrame): 관측 행렬
        factor_items (Optional[Dict[str, List[str]]]): 요인 → 문항 리스트
        config (Optional[FactorAnalysisConfig]): 분석 설정

    Returns:
        Dict[str, Any]: 분석 결과
    """
    model_spec = create_factor_model_spec(factor_items)
    analyzer = SemopyAnalyzer(config)
    results = analyzer.fit_model(data, model_spec)
    results['model_spec'] = model_spec
    results['summary'] = analyzer.get_model_summary()
    return results
