"""
결과 내보내기, 시각화, 보고서 테스트
"""

import json

import matplotlib.pyplot as plt
import pandas as pd
import pytest

from psychonetwork.bootstrap import CENTRALITY_BOOTSTRAP_WARNING, bootstrap_network
from psychonetwork.centrality import compute_centrality
from psychonetwork.config import NetworkEstimationConfig, VisualizationConfig
from psychonetwork.data_loader import ItemDataLoader
from psychonetwork.estimator import estimate_network
from psychonetwork.network import build_correlation_network
from psychonetwork.report import TutorialReport
from psychonetwork.results_exporter import NetworkResultsExporter
from psychonetwork.visualizer import NetworkVisualizer


@pytest.fixture
def groups(small_data):
    return {'V1': 'G1', 'V2': 'G1', 'V3': 'G2', 'V4': 'G2', 'V5': 'G2'}


@pytest.fixture
def pruned_network(small_data, groups):
    return estimate_network(small_data, estimator='pcor', prune='sig', groups=groups)


@pytest.fixture
def boot_result(small_data, groups):
    return bootstrap_network(small_data, n_bootstrap=10, n_workers=1, show_progress=False,
                             estimation_config=NetworkEstimationConfig(prune=None),
                             groups=groups)


class TestResultsExporter:

    def test_export_comprehensive_results(self, tmp_path, pruned_network, boot_result):
        exporter = NetworkResultsExporter(tmp_path, timestamp='test')
        centrality = compute_centrality(pruned_network)
        saved = exporter.export_comprehensive_results(
            pruned_network, centrality=centrality, bootstrap=boot_result,
            metadata={'source': 'unit-test'})

        for key in ('weights', 'edgelist', 'centrality', 'bootstrap', 'metadata'):
            assert saved[key].exists()

        edges = pd.read_csv(saved['edgelist'], encoding='utf-8-sig')
        assert list(edges.columns) == ['from', 'to', 'weight', 'p_value']
        assert len(edges) == pruned_network.n_edges

        meta = json.loads(saved['metadata'].read_text(encoding='utf-8'))
        assert meta['source'] == 'unit-test'
        assert meta['bootstrap']['n_requested'] == 10
        assert meta['network']['prune'] == 'sig'

    def test_weight_matrix_round_trip(self, tmp_path, pruned_network):
        path = NetworkResultsExporter(tmp_path, timestamp='t').export_weight_matrix(pruned_network)
        loaded = pd.read_csv(path, index_col=0, encoding='utf-8-sig')
        assert loaded.shape == (5, 5)
        assert loaded.loc['V1', 'V2'] == pytest.approx(pruned_network.weights.loc['V1', 'V2'])

    def test_missing_cfa_results_raise(self, tmp_path):
        exporter = NetworkResultsExporter(tmp_path)
        with pytest.raises(ValueError):
            exporter.export_fit_indices({})
        with pytest.raises(ValueError):
            exporter.export_factor_loadings({'factor_loadings': pd.DataFrame()})


class TestNetworkVisualizer:

    @pytest.fixture
    def visualizer(self):
        return NetworkVisualizer(VisualizationConfig(dpi=50, figsize=(5, 4)))

    def test_plot_network_saves_file(self, tmp_path, visualizer, pruned_network):
        path = tmp_path / 'network.png'
        fig = visualizer.plot_network(pruned_network, threshold=0.1, save_path=path)
        assert path.exists()
        assert isinstance(fig, plt.Figure)
        plt.close(fig)

    def test_threshold_plot_keeps_weights(self, visualizer, pruned_network):
        before = pruned_network.weights
        fig = visualizer.plot_network(pruned_network, threshold=0.5)
        pd.testing.assert_frame_equal(pruned_network.weights, before)
        plt.close(fig)

    def test_other_plots(self, tmp_path, visualizer, small_data, pruned_network, boot_result):
        corr = build_correlation_network(small_data)
        figures = [
            visualizer.plot_correlation_heatmap(corr.weights, save_path=tmp_path / 'heat.png'),
            visualizer.plot_centrality(compute_centrality(pruned_network),
                                       save_path=tmp_path / 'centrality.png'),
            visualizer.plot_edge_bootstrap(boot_result, save_path=tmp_path / 'boot.png'),
        ]
        for name in ('heat.png', 'centrality.png', 'boot.png'):
            assert (tmp_path / name).exists()
        for fig in figures:
            plt.close(fig)

    def test_empty_loadings_raise(self, visualizer):
        with pytest.raises(ValueError):
            visualizer.plot_factor_loadings(pd.DataFrame())


class TestTutorialReport:

    def test_report_sections(self, tmp_path, small_data, pruned_network, boot_result):
        loader = ItemDataLoader(items=list(small_data.columns))
        data, missing = loader.prepare(small_data)

        report = TutorialReport(title='Test report')
        report.add_data_section(data, missing)
        report.add_correlation_section(build_correlation_network(data), [])
        report.add_network_section(pruned_network, threshold=0.1, figures=[
            report.add_figure('Network', tmp_path / 'figures' / 'net.png', base_dir=tmp_path),
        ])
        report.add_centrality_section(compute_centrality(pruned_network))
        report.add_bootstrap_section(boot_result)

        path = report.save(tmp_path / 'report.md')
        text = path.read_text(encoding='utf-8')

        assert text.startswith('# Test report')
        assert '## 4. Partial correlation network' in text
        assert 'Pruning' in text
        assert 'Thresholding' in text
        assert '10/10 resamples converged' in text
        assert CENTRALITY_BOOTSTRAP_WARNING in text
        assert '![Network](figures/net.png)' in text

    @pytest.mark.parametrize('estimator, heading', [
        ('cor', '## 4. Correlation network (estimated)'),
        ('pcor', '## 4. Partial correlation network'),
        ('glasso', '## 4. Regularized partial correlation network (EBICglasso)'),
    ])
    def test_network_heading_follows_estimator(self, small_data, estimator, heading):
        network = estimate_network(small_data, estimator=estimator, prune=None)
        report = TutorialReport()
        report.add_network_section(network, threshold=0.0, figures=[])

        text = report.render()
        assert heading in text
        if estimator != 'pcor':
            assert '## 4. Partial correlation network\n' not in text
