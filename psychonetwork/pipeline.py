"""
Network Analysis Pipeline

데이터 로딩 → CFA → 상관 네트워크 → 편상관 네트워크 → 중심성 → 부트스트랩 → 보고서
단계를 순서대로 실행합니다.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import matplotlib.pyplot as plt
import pandas as pd

from .bootstrap import BootstrapResult, NetworkBootstrap
from .centrality import compute_centrality
from .config import RESULTS_CONFIG, NetworkAnalysisConfig
from .data_loader import ItemDataLoader, MissingDataReport, describe_items
from .estimator import estimate_from_config
from .factor_analyzer import run_cfa
from .network import WeightedNetwork, build_correlation_network
from .report import TutorialReport
from .results_exporter import NetworkResultsExporter
from .visualizer import NetworkVisualizer

logger = logging.getLogger(__name__)


@dataclass
class PipelineResults:
    """파이프라인 단계별 결과"""

    data: Optional[pd.DataFrame] = None
    missing_report: Optional[MissingDataReport] = None
    cfa_results: Optional[Dict[str, Any]] = None
    correlation_network: Optional[WeightedNetwork] = None
    network: Optional[WeightedNetwork] = None
    centrality: Optional[pd.DataFrame] = None
    bootstrap: Optional[BootstrapResult] = None
    figures: Dict[str, Path] = field(default_factory=dict)
    tables: Dict[str, Path] = field(default_factory=dict)
    report_path: Optional[Path] = None


class NetworkAnalysisPipeline:
    """네트워크 분석 튜토리얼 파이프라인"""

    def __init__(self, config: Optional[NetworkAnalysisConfig] = None):
        self.config = config if config is not None else NetworkAnalysisConfig()
        self.output_dir = Path(self.config.output_dir or RESULTS_CONFIG['output_dir'])
        self.figures_dir = self.output_dir / RESULTS_CONFIG['figures_subdir']
        self.tables_dir = self.output_dir / RESULTS_CONFIG['tables_subdir']
        self.visualizer = NetworkVisualizer(self.config.visualization)
        self.results = PipelineResults()

    def _save_figure(self, key: str, fig: plt.Figure) -> None:
        self.results.figures[key] = self.figures_dir / f"{key}.png"
        plt.close(fig)

    def load_data(self, data_path: Optional[Union[str, Path]] = None,
                  raw: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """
        관측 행렬 로딩 (CSV 경로 또는 메모리의 원자료)

        Args:
            data_path: CSV 파일 경로
            raw: 이미 읽어둔 원자료 DataFrame

        Returns:
            pd.DataFrame: listwise 삭제 후 관측 행렬
        """
        loader = ItemDataLoader(
            data_path,
            items=self.config.items,
            reverse_items=self.config.reverse_items,
            scale_range=self.config.scale_range,
        )
        if raw is not None:
            data, report = loader.prepare(raw)
        else:
            data, report = loader.load()

        logger.info(report.summary())
        self.results.data = data
        self.results.missing_report = report
        return data

    def _require_data(self) -> pd.DataFrame:
        if self.results.data is None:
            raise RuntimeError("데이터가 로딩되지 않았습니다. load_data()를 먼저 실행하세요")
        return self.results.data

    def fit_cfa(self) -> Dict[str, Any]:
        """5요인 확인적 요인분석 (진단 단계)"""
        data = self._require_data()
        results = run_cfa(data, self.config.factor_items, self.config.factor_analysis)
        if not results['converged']:
            logger.warning("CFA가 수렴하지 않았습니다. 적합도 해석에 주의하세요")

        loadings = results.get('standardized_loadings')
        if loadings is None or loadings.empty:
            loadings = results.get('factor_loadings')
        if loadings is not None and not loadings.empty:
            fig = self.visualizer.plot_factor_loadings(
                loadings, save_path=self.figures_dir / 'factor_loadings.png')
            self._save_figure('factor_loadings', fig)

        self.results.cfa_results = results
        return results

    def build_correlation_network(self) -> WeightedNetwork:
        data = self._require_data()
        network = build_correlation_network(data, groups=self.config.groups,
                                            method=self.config.estimation.cor_method)

        fig = self.visualizer.plot_correlation_heatmap(
            network.weights, title='Item correlations',
            save_path=self.figures_dir / 'correlation_heatmap.png')
        self._save_figure('correlation_heatmap', fig)
        fig = self.visualizer.plot_network(
            network, save_path=self.figures_dir / 'correlation_network.png')
        self._save_figure('correlation_network', fig)

        self.results.correlation_network = network
        return network

    def estimate_network(self) -> WeightedNetwork:
        """설정된 추정방법으로 PMRF 추정 후 그래프 생성"""
        data = self._require_data()
        network = estimate_from_config(data, self.config.estimation, groups=self.config.groups)

        # 상관 네트워크와 같은 노드 배치로 그려서 비교
        pos = None
        if self.results.correlation_network is not None:
            pos = self.visualizer.compute_layout(self.results.correlation_network)

        fig = self.visualizer.plot_network(
            network, threshold=0.0, pos=pos,
            save_path=self.figures_dir / 'partial_correlation_network.png')
        self._save_figure('partial_correlation_network', fig)

        threshold = self.config.visualization.threshold
        if threshold > 0:
            fig = self.visualizer.plot_network(
                network, threshold=threshold, pos=pos,
                save_path=self.figures_dir / 'partial_correlation_network_thresholded.png')
            self._save_figure('partial_correlation_network_thresholded', fig)

        self.results.network = network
        return network

    def compute_centrality(self) -> pd.DataFrame:
        if self.results.network is None:
            raise RuntimeError("네트워크가 추정되지 않았습니다. estimate_network()를 먼저 실행하세요")
        table = compute_centrality(self.results.network)
        fig = self.visualizer.plot_centrality(table, save_path=self.figures_dir / 'centrality.png')
        self._save_figure('centrality', fig)
        self.results.centrality = table
        return table

    def run_bootstrap(self) -> BootstrapResult:
        """엣지 가중치 부트스트랩 (원 표본과 같은 추정 설정 사용)"""
        data = self._require_data()
        bootstrapper = NetworkBootstrap(self.config.bootstrap, self.config.estimation)
        result = bootstrapper.run(data, groups=self.config.groups)
        logger.info(result.yield_summary())

        fig = self.visualizer.plot_edge_bootstrap(
            result, save_path=self.figures_dir / 'edge_bootstrap.png')
        self._save_figure('edge_bootstrap', fig)

        self.results.bootstrap = result
        return result

    def export_tables(self) -> Dict[str, Path]:
        exporter = NetworkResultsExporter(self.tables_dir)
        self.results.tables = exporter.export_comprehensive_results(
            self.results.network,
            centrality=self.results.centrality,
            bootstrap=self.results.bootstrap,
            cfa_results=self.results.cfa_results,
            correlation_network=self.results.correlation_network,
            metadata={'config': {
                'estimation': self.config.estimation.estimator_kwargs(),
                'run_cfa': self.config.run_cfa,
                'run_bootstrap': self.config.run_bootstrap,
                'threshold': self.config.visualization.threshold,
            }},
        )
        return self.results.tables

    def render_report(self) -> Path:
        """단계별 결과를 Markdown 보고서로 저장"""
        results = self.results
        report = TutorialReport()

        def figure(key: str, caption: str) -> str:
            return report.add_figure(caption, results.figures.get(key), base_dir=self.output_dir)

        report.add_data_section(results.data, results.missing_report, describe_items(results.data))
        if results.cfa_results is not None:
            report.add_cfa_section(results.cfa_results,
                                   figure('factor_loadings', 'Factor loadings'))
        if results.correlation_network is not None:
            report.add_correlation_section(results.correlation_network, [
                figure('correlation_heatmap', 'Correlation heatmap'),
                figure('correlation_network', 'Correlation network'),
            ])
        if results.network is not None:
            report.add_network_section(results.network, self.config.visualization.threshold, [
                figure('partial_correlation_network', 'Partial correlation network'),
                figure('partial_correlation_network_thresholded', 'Thresholded view'),
            ])
        if results.centrality is not None:
            report.add_centrality_section(results.centrality, figure('centrality', 'Centrality'))
        if results.bootstrap is not None:
            report.add_bootstrap_section(results.bootstrap,
                                         figure('edge_bootstrap', 'Edge weight bootstrap'))

        self.results.report_path = report.save(self.output_dir / RESULTS_CONFIG['report_name'])
        return self.results.report_path

    def run(self, data_path: Optional[Union[str, Path]] = None,
            raw: Optional[pd.DataFrame] = None) -> PipelineResults:
        """
        전체 분석 실행

        Args:
            data_path: CSV 파일 경로
            raw: 원자료 DataFrame (data_path 대신)

        Returns:
            PipelineResults: 단계별 결과
        """
        if data_path is None and raw is None:
            raise ValueError("data_path 또는 raw 데이터가 필요합니다")

        logger.info("=== 네트워크 분석 시작 ===")
        self.load_data(data_path, raw=raw)
        if self.config.run_cfa:
            self.fit_cfa()
        self.build_correlation_network()
        self.estimate_network()
        self.compute_centrality()
        if self.config.run_bootstrap:
            self.run_bootstrap()
        self.export_tables()
        self.render_report()
        logger.info(f"=== 네트워크 분석 완료: {self.output_dir} ===")
        return self.results


def run_network_analysis(data_path: Optional[Union[str, Path]] = None,
                         config: Optional[NetworkAnalysisConfig] = None,
                         output_dir: Optional[Union[str, Path]] = None,
                         raw: Optional[pd.DataFrame] = None) -> PipelineResults:
    """
    네트워크 분석 파이프라인 편의 함수

    Args:
        data_path: CSV 파일 경로
        config: 분석 설정 (기본 설정 사용 시 None)
        output_dir: 결과 디렉토리 (설정값보다 우선)
        raw: 원자료 DataFrame (data_path 대신)

    Returns:
        PipelineResults: 단계별 결과
    """
    config = config if config is not None else NetworkAnalysisConfig()
    if output_dir is not None:
        config.output_dir = Path(output_dir)
    return NetworkAnalysisPipeline(config).run(data_path, raw=raw)
