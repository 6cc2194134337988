"""
Tutorial Report Module

분석 단계별 설명, 결과 표, 그래프 링크를 하나의 Markdown 보고서로 묶습니다.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from .bootstrap import CENTRALITY_BOOTSTRAP_WARNING, BootstrapResult
from .data_loader import MissingDataReport
from .factor_analyzer import interpret_fit_index
from .network import WeightedNetwork

logger = logging.getLogger(__name__)

NETWORK_HEADINGS = {
    'cor': ("4. Correlation network (estimated)",
            "엣지 가중치는 다른 문항을 통제하지 않은 주변(marginal) 상관계수입니다."),
    'pcor': ("4. Partial correlation network",
             "엣지 가중치는 나머지 모든 문항을 통제한 조건부 연관(편상관)입니다."),
    'glasso': ("4. Regularized partial correlation network (EBICglasso)",
               "엣지 가중치는 L1 정규화로 축소된 편상관입니다."),
}


def _table(df: pd.DataFrame, index: bool = True, float_digits: int = 3) -> str:
    """DataFrame을 코드 블록 텍스트 표로 변환"""
    text = df.to_string(index=index, float_format=lambda v: f"{v:.{float_digits}f}")
    return f"```\n{text}\n```"


class TutorialReport:
    """네트워크 분석 보고서 (Markdown)"""

    def __init__(self, title: str = "Network Analysis of a Five-Factor Personality Inventory"):
        self.title = title
        self.sections: List[str] = []
        self.created_at = datetime.now()

    def add_section(self, heading: str, body: str) -> None:
        self.sections.append(f"## {heading}\n\n{body.strip()}\n")

    def add_figure(self, caption: str, path: Optional[Union[str, Path]],
                   base_dir: Optional[Path] = None) -> str:
        """그래프 링크 (보고서 위치 기준 상대 경로)"""
        if path is None:
            return ''
        path = Path(path)
        if base_dir is not None:
            try:
                path = path.relative_to(base_dir)
            except ValueError:
                pass
        return f"![{caption}]({path.as_posix()})"

    def add_data_section(self, data: pd.DataFrame, report: MissingDataReport,
                         descriptives: Optional[pd.DataFrame] = None) -> None:
        body = (
            f"응답자 × 문항 관측 행렬을 불러와 결측치가 있는 행을 listwise 방식으로 제거했습니다.\n\n"
            f"- 분석 문항 수: {data.shape[1]}\n"
            f"- 삭제 전 응답자 수: {report.n_rows_before}\n"
            f"- 삭제 후 응답자 수: {report.n_rows_after}\n"
            f"- 제거된 행: {report.n_rows_removed} ({report.removal_rate:.1%})\n"
            f"- 모든 문항이 결측인 행: {report.all_missing_rows}\n"
        )
        if descriptives is not None:
            body += "\n문항 기술통계:\n\n" + _table(descriptives)
        self.add_section("1. Data", body)

    def add_cfa_section(self, cfa_results: Dict[str, Any], figure: str = '') -> None:
        convergence = cfa_results.get('convergence', {})
        lines = [
            "5요인 측정모형에 대한 확인적 요인분석(semopy)을 수행했습니다. "
            "이 단계는 네트워크 분석 전에 요인 구조를 확인하는 진단 단계입니다.",
            "",
            f"- 수렴 여부: {convergence.get('success')} "
            f"(반복 {convergence.get('n_iterations')}회)",
        ]
        for warning in cfa_results.get('warnings', []):
            lines.append(f"- ⚠️ {warning}")

        fit_indices = cfa_results.get('fit_indices', {})
        if fit_indices:
            fit_df = pd.DataFrame([
                {'index': k, 'value': v, 'interpretation': interpret_fit_index(k, v)}
                for k, v in fit_indices.items()
            ])
            lines += ["", "적합도 지수:", "", _table(fit_df, index=False)]

        loadings = cfa_results.get('standardized_loadings')
        if loadings is None or loadings.empty:
            loadings = cfa_results.get('factor_loadings')
        if loadings is not None and not loadings.empty:
            lines += ["", "Factor loadings:", "",
                      _table(loadings[['Factor', 'Item', 'Loading']], index=False)]
        if figure:
            lines += ["", figure]
        self.add_section("2. Confirmatory factor analysis", "\n".join(lines))

    def add_correlation_section(self, network: WeightedNetwork, figures: List[str]) -> None:
        summary = network.summary()
        body = (
            "문항간 상관계수로 가중 무방향 그래프를 만들었습니다. "
            "엣지 리스트는 순서 없는 문항쌍마다 한 행이며 자기 루프는 제외됩니다.\n\n"
            f"- 엣지 수: {summary['n_edges']} (양 {summary['n_positive']}, 음 {summary['n_negative']})\n"
            f"- 평균 |r|: {summary['mean_abs_weight']}\n\n"
            "엣지 리스트 (|r| 상위 10개):\n\n"
        )
        edges = network.edgelist()
        top = edges.reindex(edges['weight'].abs().sort_values(ascending=False).index).head(10)
        body += _table(top, index=False)
        body += "\n\n" + "\n\n".join(f for f in figures if f)
        self.add_section("3. Correlation network", body)

    def add_network_section(self, network: WeightedNetwork, threshold: float,
                            figures: List[str]) -> None:
        summary = network.summary()
        heading, weight_note = NETWORK_HEADINGS[network.estimator]
        lines = [
            f"추정방법 `{network.estimator}`으로 네트워크를 추정했습니다. {weight_note}",
            "",
            f"- 엣지 수: {summary['n_edges']} / 가능한 {len(network.nodes) * (len(network.nodes) - 1) // 2}",
            f"- 밀도: {summary['density']}",
        ]
        if network.is_pruned:
            lines.append(
                f"- Pruning (alpha={summary.get('alpha')}, 보정={summary.get('adjust')}): "
                f"유의하지 않은 엣지 {summary.get('n_pruned', 0)}개를 0으로 설정했습니다. "
                "제거된 엣지는 중심성과 부트스트랩 분석에서도 제외됩니다."
            )
        if 'lambda' in summary:
            lines.append(f"- EBICglasso: lambda={summary['lambda']:.4f}, gamma={summary['gamma']}")
        if threshold > 0:
            n_visible = len(network.visible_edges(threshold))
            lines.append(
                f"- Thresholding: 그래프에는 |w| >= {threshold:g}인 엣지 {n_visible}개만 표시했습니다. "
                "thresholding은 표시만 바꾸며 분석에 쓰이는 가중치 행렬은 그대로입니다."
            )
        lines += [""] + [f for f in figures if f]
        self.add_section(heading, "\n".join(lines))

    def add_centrality_section(self, table: pd.DataFrame, figure: str = '') -> None:
        body = (
            "노드 중심성: Strength(|w|의 합), Closeness(거리 1/|w| 기준 평균 최단거리의 역수), "
            "Betweenness(최단경로 경유 횟수), Expected Influence(부호를 유지한 w의 합).\n\n"
            + _table(table.sort_values('Strength', ascending=False))
        )
        if figure:
            body += "\n\n" + figure
        self.add_section("5. Centrality", body)

    def add_bootstrap_section(self, result: BootstrapResult, figure: str = '') -> None:
        lines = [
            f"응답자를 복원추출하여 네트워크를 {result.n_requested}회 재추정했습니다.",
            "",
            f"- {result.yield_summary()} (실패 {result.n_failed}회는 집계에서 제외)",
            f"- 신뢰수준: {result.confidence_level:.0%} (백분위 구간)",
            f"- 0을 포함하지 않는 엣지: {len(result.significant_edges())}개",
            "",
            f"> {CENTRALITY_BOOTSTRAP_WARNING}",
            "",
            "엣지 신뢰구간 (원 표본 |w| 상위 15개):",
            "",
        ]
        summary = result.edge_summary
        top = summary.reindex(summary['sample'].abs().sort_values(ascending=False).index).head(15)
        lines.append(_table(top[['edge', 'sample', 'mean', 'lower', 'upper', 'prop_nonzero']],
                            index=False))
        if figure:
            lines += ["", figure]
        self.add_section("6. Bootstrapped edge weights", "\n".join(lines))

    def render(self) -> str:
        header = (
            f"# {self.title}\n\n"
            f"생성 일시: {self.created_at.strftime('%Y-%m-%d %H:%M:%S')}\n"
        )
        return header + "\n" + "\n".join(self.sections)

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render(), encoding='utf-8')
        logger.info(f"보고서 저장 완료: {path}")
        return path
