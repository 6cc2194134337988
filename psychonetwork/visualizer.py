"""
Network Visualization Module

네트워크 분석 결과 시각화:
1. 네트워크 그래프 (요인별 노드 색상, 양/음 엣지 색상, thresholding)
2. 상관계수 히트맵
3. 중심성 지표 그래프
4. 엣지 가중치 부트스트랩 신뢰구간
5. Factor loading 히트맵

thresholding은 그리는 엣지만 고를 뿐 네트워크 가중치 행렬은 바꾸지 않습니다.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Union

import matplotlib.pyplot as plt
import networkx as nx
import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.lines import Line2D
from matplotlib.patches import Patch

from .bootstrap import BootstrapResult
from .centrality import CENTRALITY_MEASURES, standardize_centrality
from .config import FACTOR_LABELS, VisualizationConfig
from .network import WeightedNetwork

# 영문 폰트 설정 (글꼴 문제 해결)
plt.rcParams['font.family'] = ['DejaVu Sans', 'Arial', 'sans-serif']
plt.rcParams['axes.unicode_minus'] = False

logger = logging.getLogger(__name__)


class NetworkVisualizer:
    """네트워크 분석 결과 시각화 클래스"""

    def __init__(self, config: Optional[VisualizationConfig] = None):
        """
        초기화

        Args:
            config (Optional[VisualizationConfig]): 시각화 설정
        """
        self.config = config if config is not None else VisualizationConfig()
        sns.set_style('white')

    def _group_colors(self, network: WeightedNetwork) -> Dict[str, tuple]:
        groups = list(dict.fromkeys(network.groups.get(node, 'Other') for node in network.nodes))
        palette = sns.color_palette(self.config.palette, n_colors=max(len(groups), 1))
        return dict(zip(groups, palette))

    def compute_layout(self, network: WeightedNetwork) -> Dict[str, np.ndarray]:
        """전체 엣지(|w|)를 기준으로 노드 위치 계산"""
        graph = network.to_networkx()
        if self.config.layout == 'circular':
            return nx.circular_layout(graph)
        if self.config.layout == 'kamada_kawai' and graph.number_of_edges() > 0:
            return nx.kamada_kawai_layout(graph, weight='distance')
        return nx.spring_layout(graph, weight='abs_weight', seed=self.config.layout_seed)

    def _save(self, fig: plt.Figure, save_path: Optional[Union[str, Path]]) -> None:
        if save_path:
            Path(save_path).parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(save_path, dpi=self.config.dpi, bbox_inches='tight')
            logger.info(f"그래프 저장: {save_path}")

    def plot_network(self, network: WeightedNetwork,
                     threshold: Optional[float] = None,
                     title: Optional[str] = None,
                     save_path: Optional[Union[str, Path]] = None,
                     pos: Optional[Dict[str, np.ndarray]] = None) -> plt.Figure:
        """
        네트워크 그래프 생성

        Args:
            network: 가중 네트워크
            threshold: 표시할 최소 |w| (None이면 설정값)
            title: 그래프 제목
            save_path: 저장 경로
            pos: 노드 위치 (여러 그래프의 배치를 맞출 때)

        Returns:
            matplotlib Figure 객체
        """
        threshold = self.config.threshold if threshold is None else threshold
        visible = network.visible_edges(threshold)
        pos = pos if pos is not None else self.compute_layout(network)
        colors = self._group_colors(network)

        graph = nx.Graph()
        graph.add_nodes_from(network.nodes)

        fig, ax = plt.subplots(figsize=self.config.figsize)

        max_abs = float(visible['weight'].abs().max()) if len(visible) else 1.0
        edge_list = list(zip(visible['from'], visible['to']))
        widths = [self.config.edge_width_scale * abs(w) / max_abs for w in visible['weight']]
        edge_colors = [self.config.positive_color if w > 0 else self.config.negative_color
                       for w in visible['weight']]

        if edge_list:
            nx.draw_networkx_edges(graph, pos, edgelist=edge_list, width=widths,
                                   edge_color=edge_colors, alpha=0.8, ax=ax)

        node_colors = [colors[network.groups.get(node, 'Other')] for node in network.nodes]
        nx.draw_networkx_nodes(graph, pos, nodelist=network.nodes, node_color=node_colors,
                               node_size=self.config.node_size, edgecolors='black',
                               linewidths=1.0, ax=ax)
        nx.draw_networkx_labels(graph, pos, font_size=10, font_weight='bold', ax=ax)

        legend_elements = [Patch(facecolor=color, edgecolor='black',
                                 label=FACTOR_LABELS.get(group, group))
                           for group, color in colors.items() if network.groups]
        legend_elements += [
            Line2D([0], [0], color=self.config.positive_color, lw=3, label='Positive'),
            Line2D([0], [0], color=self.config.negative_color, lw=3, label='Negative'),
        ]
        ax.legend(handles=legend_elements, loc='upper left', bbox_to_anchor=(1.0, 1.0),
                  frameon=False)

        if title is None:
            title = f"{network.estimator} network"
            if threshold > 0:
                title += f" (|w| >= {threshold:g} shown)"
        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.axis('off')
        plt.tight_layout()

        self._save(fig, save_path)
        return fig

    def plot_correlation_heatmap(self, matrix: pd.DataFrame,
                                 title: str = 'Item correlations',
                                 save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
        """상관계수(또는 편상관) 히트맵 - 대각선 아래만 표시"""
        fig, ax = plt.subplots(figsize=self.config.figsize)
        mask = np.triu(np.ones_like(matrix, dtype=bool))
        sns.heatmap(matrix, mask=mask, cmap='RdBu_r', center=0, vmin=-1, vmax=1,
                    square=True, linewidths=0.3, cbar_kws={'label': 'Weight'}, ax=ax)
        ax.set_title(title, fontsize=14, fontweight='bold')
        plt.tight_layout()
        self._save(fig, save_path)
        return fig

    def plot_centrality(self, table: pd.DataFrame, standardized: bool = True,
                        save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
        """
        중심성 지표 그래프 (지표별 패널, 노드는 세로축)

        Args:
            table: compute_centrality() 결과
            standardized: z 점수로 표시할지 여부
            save_path: 저장 경로

        Returns:
            matplotlib Figure 객체
        """
        source = standardize_centrality(table) if standardized else table
        measures = [m for m in CENTRALITY_MEASURES if m in source.columns]
        nodes = list(source.index)

        height = max(4, 0.3 * len(nodes))
        fig, axes = plt.subplots(1, len(measures), figsize=(3 * len(measures), height),
                                 sharey=True, squeeze=False)
        y = np.arange(len(nodes))

        for ax, measure in zip(axes[0], measures):
            ax.plot(source[measure].values, y, marker='o', color='black', linewidth=1)
            if standardized:
                ax.axvline(0, color='grey', linestyle=':', linewidth=0.8)
            ax.set_title(measure, fontsize=11)
            ax.grid(axis='x', alpha=0.3)

        axes[0][0].set_yticks(y)
        axes[0][0].set_yticklabels(nodes)
        axes[0][0].invert_yaxis()
        fig.supxlabel('z-score' if standardized else 'raw value')
        plt.tight_layout()

        self._save(fig, save_path)
        return fig

    def plot_edge_bootstrap(self, result: BootstrapResult,
                            save_path: Optional[Union[str, Path]] = None,
                            include_zero_edges: bool = True) -> plt.Figure:
        """
        엣지 가중치 부트스트랩 신뢰구간 그래프

        엣지는 원 표본 가중치 순으로 정렬하고, 신뢰구간 띠와
        원 표본 값(빨강), 부트스트랩 평균(검정)을 함께 표시합니다.
        """
        summary = result.edge_summary
        if not include_zero_edges:
            summary = summary[(summary['sample'] != 0) | (summary['mean'] != 0)]
        summary = summary.reset_index(drop=True)

        height = max(4, 0.12 * len(summary))
        fig, ax = plt.subplots(figsize=(self.config.figsize[0], height))
        y = np.arange(len(summary))

        ax.fill_betweenx(y, summary['lower'], summary['upper'], color='grey', alpha=0.35,
                         label=f"{int(result.confidence_level * 100)}% bootstrap CI")
        ax.plot(summary['mean'], y, color='black', linewidth=0.8, label='Bootstrap mean')
        ax.plot(summary['sample'], y, color='red', linewidth=0.8, marker='o', markersize=2,
                label='Sample')
        ax.axvline(0, color='grey', linestyle=':', linewidth=0.8)

        if len(summary) <= 60:
            ax.set_yticks(y)
            ax.set_yticklabels(summary['edge'], fontsize=7)
        else:
            ax.set_yticks([])
            ax.set_ylabel('Edges (ordered by sample weight)')

        ax.set_xlabel('Edge weight')
        ax.set_title(f"Edge weight bootstrap ({result.yield_summary()})",
                     fontsize=13, fontweight='bold')
        ax.legend(loc='lower right')
        plt.tight_layout()

        self._save(fig, save_path)
        return fig

    def plot_factor_loadings(self, loadings: pd.DataFrame,
                             save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
        """Factor loading 히트맵 (문항 × 요인)"""
        if loadings is None or loadings.empty:
            raise ValueError("Factor loadings 데이터가 없습니다")

        pivot = loadings.pivot_table(index='Item', columns='Factor', values='Loading',
                                     aggfunc='first', sort=False)
        fig, ax = plt.subplots(figsize=(max(6, 1.4 * pivot.shape[1]), max(6, 0.35 * len(pivot))))
        sns.heatmap(pivot, annot=True, fmt='.2f', cmap='RdBu_r', center=0,
                    cbar_kws={'label': 'Loading'}, ax=ax)
        ax.set_title('Factor Loadings', fontsize=14, fontweight='bold')
        plt.tight_layout()
        self._save(fig, save_path)
        return fig
