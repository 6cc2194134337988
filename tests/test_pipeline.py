"""
파이프라인, 설정, 실행 스크립트 테스트
"""

import pytest

from psychonetwork.config import (
    BootstrapConfig,
    NetworkAnalysisConfig,
    NetworkEstimationConfig,
    VisualizationConfig,
    create_custom_config,
    get_default_config,
    get_item_groups,
)
from psychonetwork.pipeline import NetworkAnalysisPipeline, run_network_analysis
from psychonetwork.simulation import simulate_five_factor_data


def _config(tmp_path, **overrides):
    options = dict(
        run_cfa=False,
        run_bootstrap=True,
        bootstrap=BootstrapConfig(n_bootstrap=10, n_workers=1, show_progress=False),
        visualization=VisualizationConfig(dpi=40, figsize=(5, 4), threshold=0.1),
        output_dir=tmp_path / 'out',
    )
    options.update(overrides)
    return NetworkAnalysisConfig(**options)


class TestConfig:

    def test_default_groups(self):
        config = NetworkAnalysisConfig()
        assert len(config.items) == 25
        assert config.groups['N3'] == 'Neuroticism'

    def test_duplicate_item_raises(self):
        with pytest.raises(ValueError):
            NetworkAnalysisConfig(factor_items={'F1': ['a', 'b'], 'F2': ['b', 'c']})

    def test_unknown_reverse_item_raises(self):
        with pytest.raises(ValueError):
            NetworkAnalysisConfig(reverse_items=['Q1'])

    def test_invalid_settings_raise(self):
        with pytest.raises(ValueError):
            NetworkEstimationConfig(estimator='ising')
        with pytest.raises(ValueError):
            NetworkEstimationConfig(alpha=1.5)
        with pytest.raises(ValueError):
            BootstrapConfig(n_bootstrap=0)
        with pytest.raises(ValueError):
            VisualizationConfig(layout='grid')

    def test_get_item_groups(self):
        assert get_item_groups({'F': ['x', 'y']}) == {'x': 'F', 'y': 'F'}

    def test_config_helpers(self):
        assert get_default_config().estimation.estimator == 'pcor'
        custom = create_custom_config(run_bootstrap=False)
        assert custom.run_bootstrap is False
        assert custom.estimation.estimator_kwargs()['prune'] == 'sig'


class TestPipeline:

    def test_run_from_csv(self, tmp_path):
        raw = simulate_five_factor_data(n=250, missing_rate=0.01, seed=21)
        path = tmp_path / 'bfi.csv'
        raw.to_csv(path)

        results = run_network_analysis(path, config=_config(tmp_path))

        assert results.missing_report.n_rows_removed > 0
        assert len(results.data) == results.missing_report.n_rows_after
        assert results.cfa_results is None
        assert results.network.is_pruned
        assert list(results.centrality.index) == results.network.nodes
        assert results.bootstrap.n_requested == 10

        assert results.report_path.exists()
        text = results.report_path.read_text(encoding='utf-8')
        assert '## 3. Correlation network' in text
        assert '## 6. Bootstrapped edge weights' in text

        for key in ('correlation_network', 'partial_correlation_network',
                    'partial_correlation_network_thresholded', 'centrality', 'edge_bootstrap'):
            assert results.figures[key].exists()
        assert results.tables['edgelist'].exists()

    def test_run_with_cfa_and_glasso(self, tmp_path):
        raw = simulate_five_factor_data(n=300, seed=22)
        config = _config(
            tmp_path,
            run_cfa=True,
            run_bootstrap=False,
            estimation=NetworkEstimationConfig(estimator='glasso', prune=None, n_lambda=15),
        )
        results = NetworkAnalysisPipeline(config).run(raw=raw)

        assert results.cfa_results is not None
        assert results.bootstrap is None
        assert results.network.estimator == 'glasso'
        assert results.figures['factor_loadings'].exists()
        text = results.report_path.read_text(encoding='utf-8')
        assert '## 2. Confirmatory factor analysis' in text
        assert 'EBICglasso' in text

    def test_non_converged_cfa_is_reported_and_network_still_runs(self, tmp_path, non_converging_fit):
        raw = simulate_five_factor_data(n=300, seed=23)
        results = NetworkAnalysisPipeline(_config(tmp_path, run_cfa=True, run_bootstrap=False)).run(raw=raw)

        assert results.cfa_results['converged'] is False
        assert results.network is not None
        text = results.report_path.read_text(encoding='utf-8')
        assert 'CFA 모델이 수렴하지 않았습니다' in text
        assert '## 4. Partial correlation network' in text

    def test_step_order_enforced(self, tmp_path):
        pipeline = NetworkAnalysisPipeline(_config(tmp_path))
        with pytest.raises(RuntimeError):
            pipeline.estimate_network()
        with pytest.raises(RuntimeError):
            pipeline.compute_centrality()

    def test_run_requires_data(self, tmp_path):
        with pytest.raises(ValueError):
            NetworkAnalysisPipeline(_config(tmp_path)).run()


def test_runner_script_simulated(tmp_path):
    from run_network_analysis import main

    exit_code = main([
        '--simulate', '200', '--estimator', 'pcor', '--no-cfa',
        '--bootstrap', '5', '--workers', '1', '--output', str(tmp_path / 'cli'),
    ])
    assert exit_code == 0
    assert (tmp_path / 'cli' / 'network_analysis_report.md').exists()


@pytest.mark.parametrize('count', ['0', '-5'])
def test_runner_script_rejects_non_positive_simulate(tmp_path, count):
    from run_network_analysis import main

    with pytest.raises(SystemExit) as exc_info:
        main(['--simulate', count, '--output', str(tmp_path / 'cli')])
    assert exc_info.value.code == 2
    assert not (tmp_path / 'cli').exists()
