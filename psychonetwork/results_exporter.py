"""
Network Analysis Results Exporter Module

이 모듈은 네트워크 분석 결과를 CSV/JSON 파일로 저장하는 기능을 제공합니다.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd

from .bootstrap import BootstrapResult
from .factor_analyzer import interpret_fit_index
from .network import WeightedNetwork

logger = logging.getLogger(__name__)


class NetworkResultsExporter:
    """네트워크 분석 결과를 내보내는 클래스"""

    def __init__(self, output_dir: Union[str, Path] = None, timestamp: Optional[str] = None):
        """
        Results Exporter 초기화

        Args:
            output_dir (Union[str, Path]): 결과 저장 디렉토리
            timestamp (Optional[str]): 파일명에 붙일 타임스탬프 (기본: 현재 시각)
        """
        self.output_dir = Path(output_dir) if output_dir is not None else Path("network_analysis_results")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.timestamp = timestamp or datetime.now().strftime("%Y%m%d_%H%M%S")

    def _path(self, stem: str, suffix: str = 'csv') -> Path:
        return self.output_dir / f"{stem}_{self.timestamp}.{suffix}"

    def export_weight_matrix(self, network: WeightedNetwork, name: Optional[str] = None) -> Path:
        """
        가중치 행렬을 CSV로 저장

        Args:
            network (WeightedNetwork): 네트워크
            name (Optional[str]): 파일 이름 앞부분

        Returns:
            Path: 저장된 파일 경로
        """
        file_path = self._path(name or f"weights_{network.estimator}")
        network.weights.to_csv(file_path, encoding='utf-8-sig')
        logger.info(f"가중치 행렬 저장 완료: {file_path}")
        return file_path

    def export_edgelist(self, network: WeightedNetwork, name: Optional[str] = None) -> Path:
        """엣지 리스트를 CSV로 저장 (p값이 있으면 함께 기록)"""
        edges = network.edgelist()
        p_values = network.p_values
        if p_values is not None:
            edges['p_value'] = [p_values.loc[a, b] for a, b in zip(edges['from'], edges['to'])]

        file_path = self._path(name or f"edgelist_{network.estimator}")
        edges.to_csv(file_path, index=False, encoding='utf-8-sig')
        logger.info(f"엣지 리스트 저장 완료: {file_path} ({len(edges)}개 엣지)")
        return file_path

    def export_centrality(self, table: pd.DataFrame) -> Path:
        """중심성 지표를 CSV로 저장"""
        file_path = self._path("centrality")
        table.round(6).to_csv(file_path, encoding='utf-8-sig')
        logger.info(f"중심성 지표 저장 완료: {file_path}")
        return file_path

    def export_bootstrap_summary(self, result: BootstrapResult) -> Path:
        """부트스트랩 엣지 신뢰구간을 CSV로 저장"""
        file_path = self._path("bootstrap_edges")
        summary = result.edge_summary.copy()
        summary['n_successful'] = result.n_successful
        summary['n_requested'] = result.n_requested
        summary.to_csv(file_path, index=False, encoding='utf-8-sig')
        logger.info(f"부트스트랩 요약 저장 완료: {file_path}")
        return file_path

    def export_factor_loadings(self, cfa_results: Dict[str, Any]) -> Path:
        """Factor loadings를 CSV로 저장 (표준화 loading 우선)"""
        loadings = cfa_results.get('standardized_loadings')
        if loadings is None or loadings.empty:
            loadings = cfa_results.get('factor_loadings')
        if loadings is None or loadings.empty:
            raise ValueError("Factor loadings 데이터가 없습니다")

        file_path = self._path("factor_loadings")
        loadings = loadings.copy()
        loadings['Sample_Size'] = cfa_results.get('model_info', {}).get('n_observations', 'unknown')
        loadings.to_csv(file_path, index=False, encoding='utf-8-sig')
        logger.info(f"Factor loadings 저장 완료: {file_path}")
        return file_path

    def export_fit_indices(self, cfa_results: Dict[str, Any]) -> Path:
        """적합도 지수를 해석과 함께 CSV로 저장"""
        fit_indices = cfa_results.get('fit_indices')
        if not fit_indices:
            raise ValueError("적합도 지수 데이터가 없습니다")

        fit_df = pd.DataFrame([
            {'Fit_Index': name, 'Value': value, 'Interpretation': interpret_fit_index(name, value)}
            for name, value in fit_indices.items()
        ])
        fit_df['Converged'] = cfa_results.get('converged', None)

        file_path = self._path("fit_indices")
        fit_df.to_csv(file_path, index=False, encoding='utf-8-sig')
        logger.info(f"적합도 지수 저장 완료: {file_path}")
        return file_path

    def export_metadata(self, metadata: Dict[str, Any]) -> Path:
        """분석 메타데이터를 JSON으로 저장"""
        file_path = self._path("metadata", 'json')
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(metadata, f, indent=2, ensure_ascii=False, default=_json_default)
        logger.info(f"메타데이터 저장 완료: {file_path}")
        return file_path

    def export_comprehensive_results(self, network: WeightedNetwork,
                                     centrality: Optional[pd.DataFrame] = None,
                                     bootstrap: Optional[BootstrapResult] = None,
                                     cfa_results: Optional[Dict[str, Any]] = None,
                                     correlation_network: Optional[WeightedNetwork] = None,
                                     metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Path]:
        """
        모든 결과를 한번에 저장

        Returns:
            Dict[str, Path]: {결과 종류: 파일 경로}
        """
        saved_files = {
            'weights': self.export_weight_matrix(network),
            'edgelist': self.export_edgelist(network),
        }
        if correlation_network is not None:
            saved_files['correlations'] = self.export_weight_matrix(correlation_network,
                                                                    name='correlations')
        if centrality is not None:
            saved_files['centrality'] = self.export_centrality(centrality)
        if bootstrap is not None:
            saved_files['bootstrap'] = self.export_bootstrap_summary(bootstrap)
        if cfa_results:
            if not cfa_results.get('factor_loadings', pd.DataFrame()).empty:
                saved_files['factor_loadings'] = self.export_factor_loadings(cfa_results)
            if cfa_results.get('fit_indices'):
                saved_files['fit_indices'] = self.export_fit_indices(cfa_results)

        meta = {'timestamp': self.timestamp, 'network': network.summary()}
        if bootstrap is not None:
            meta['bootstrap'] = {
                'n_requested': bootstrap.n_requested,
                'n_successful': bootstrap.n_successful,
                'n_failed': bootstrap.n_failed,
                'yield': bootstrap.yield_summary(),
                'confidence_level': bootstrap.confidence_level,
            }
        if metadata:
            meta.update(metadata)
        saved_files['metadata'] = self.export_metadata(meta)

        logger.info(f"{len(saved_files)}개 결과 파일 저장 완료: {self.output_dir}")
        return saved_files


def _json_default(value):
    """numpy/pandas/Path 값을 JSON으로 직렬화"""
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (np.floating,)):
        return float(value)
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, pd.DataFrame):
        return value.to_dict(orient='records')
    return str(value)
