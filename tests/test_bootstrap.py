"""
네트워크 부트스트랩 테스트
"""

import numpy as np
import pandas as pd
import pytest

import psychonetwork.bootstrap as bootstrap_module
from psychonetwork.bootstrap import NetworkBootstrap, bootstrap_network
from psychonetwork.config import BootstrapConfig, NetworkEstimationConfig
from psychonetwork.simulation import (
    chain_precision,
    precision_to_partial_correlation,
    simulate_ggm_data,
)

NO_PRUNE = NetworkEstimationConfig(estimator='pcor', prune=None)


class TestNetworkBootstrap:
    """NetworkBootstrap 테스트 클래스"""

    def test_result_shapes(self, small_data):
        result = bootstrap_network(small_data, n_bootstrap=30, n_workers=1,
                                   show_progress=False, estimation_config=NO_PRUNE)

        n_pairs = 5 * 4 // 2
        assert result.n_requested == 30
        assert result.n_successful == 30
        assert result.n_failed == 0
        assert result.yield_summary() == '30/30 resamples converged'
        assert result.bootstrap_edges.shape == (30, n_pairs)
        assert len(result.edge_summary) == n_pairs
        assert (result.edge_summary['lower'] <= result.edge_summary['upper']).all()

    def test_summary_sorted_by_sample_weight(self, small_data):
        result = bootstrap_network(small_data, n_bootstrap=20, n_workers=1,
                                   show_progress=False, estimation_config=NO_PRUNE)
        sample = result.edge_summary['sample'].to_numpy()
        assert np.all(np.diff(sample) >= 0)

    def test_reproducible_with_seed(self, small_data):
        kwargs = dict(n_bootstrap=15, n_workers=1, show_progress=False,
                      estimation_config=NO_PRUNE, random_seed=5)
        first = bootstrap_network(small_data, **kwargs)
        second = bootstrap_network(small_data, **kwargs)
        pd.testing.assert_frame_equal(first.bootstrap_edges, second.bootstrap_edges)

    def test_parallel_matches_sequential(self, small_data):
        kwargs = dict(n_bootstrap=8, show_progress=False, estimation_config=NO_PRUNE,
                      random_seed=9)
        sequential = bootstrap_network(small_data, n_workers=1, **kwargs)
        parallel = bootstrap_network(small_data, n_workers=2, **kwargs)
        pd.testing.assert_frame_equal(sequential.bootstrap_edges, parallel.bootstrap_edges)

    def test_failed_resamples_are_counted_and_excluded(self):
        # Z는 한 명만 1이므로 그 응답자가 빠진 리샘플은 분산이 0이 되어 실패
        rng = np.random.default_rng(0)
        data = pd.DataFrame(rng.standard_normal((30, 2)), columns=['X', 'Y'])
        data['Z'] = 0.0
        data.loc[0, 'Z'] = 1.0

        result = bootstrap_network(data, n_bootstrap=40, n_workers=1, show_progress=False,
                                   estimation_config=NO_PRUNE, random_seed=1)

        assert result.n_failed > 0
        assert result.n_successful + result.n_failed == 40
        assert len(result.failures) == result.n_failed
        assert len(result.bootstrap_edges) == result.n_successful
        assert result.yield_summary() == f"{result.n_successful}/40 resamples converged"
        failed_ids = {f['sample_idx'] for f in result.failures}
        assert failed_ids.isdisjoint(result.bootstrap_edges.index)

    def test_all_failures_raise(self, small_data, monkeypatch):
        def always_fail(args):
            return {'sample_idx': args[0], 'success': False, 'error': 'boom'}

        monkeypatch.setattr(bootstrap_module, '_bootstrap_worker', always_fail)
        bootstrapper = NetworkBootstrap(
            BootstrapConfig(n_bootstrap=5, n_workers=1, show_progress=False), NO_PRUNE)
        with pytest.raises(RuntimeError):
            bootstrapper.run(small_data)

    def test_centrality_intervals_refused(self, small_data):
        result = bootstrap_network(small_data, n_bootstrap=5, n_workers=1,
                                   show_progress=False, estimation_config=NO_PRUNE)
        assert len(result.summarize('edge')) == 10
        for statistic in ('Strength', 'closeness', 'ExpectedInfluence'):
            with pytest.raises(ValueError):
                result.summarize(statistic)

    def test_pruned_resamples_use_same_settings(self, five_factor_data):
        config = NetworkEstimationConfig(estimator='pcor', prune='sig', alpha=0.05)
        result = bootstrap_network(five_factor_data, n_bootstrap=10, n_workers=1,
                                   show_progress=False, estimation_config=config)
        assert result.sample_network.is_pruned
        assert (result.edge_summary['prop_nonzero'] < 1.0).any()


def test_edge_interval_coverage():
    """백분위 신뢰구간이 모집단 편상관을 대략 95% 포함하는지 확인"""
    columns = [f"V{i + 1}" for i in range(8)]
    precision = chain_precision(8, 0.35)
    truth = precision_to_partial_correlation(precision, columns).to_numpy()
    true_edges = truth[np.triu_indices(8, k=1)]

    covered = []
    for seed in range(4):
        data = simulate_ggm_data(precision, n=500, columns=columns, seed=100 + seed)
        result = bootstrap_network(data, n_bootstrap=500, n_workers=1, show_progress=False,
                                   estimation_config=NO_PRUNE, random_seed=seed)
        summary = result.edge_summary.set_index('edge')
        labels = result.sample_network.edge_labels()
        lower = summary.loc[labels, 'lower'].to_numpy()
        upper = summary.loc[labels, 'upper'].to_numpy()
        covered.extend((lower <= true_edges) & (true_edges <= upper))

    coverage = float(np.mean(covered))
    assert coverage >= 0.85
