"""
네트워크 추정 (cor / pcor / glasso, pruning) 테스트
"""

import numpy as np
import pandas as pd
import pytest

from psychonetwork.centrality import compute_centrality
from psychonetwork.config import NetworkEstimationConfig
from psychonetwork.estimator import (
    adjust_pvalues,
    correlation_pvalues,
    estimate_from_config,
    estimate_network,
    partial_correlation_matrix,
)
from psychonetwork.network import correlation_matrix
from psychonetwork.simulation import chain_precision, precision_to_partial_correlation


class TestPartialCorrelation:

    def test_matches_population_chain(self, chain_data):
        network = estimate_network(chain_data, estimator='pcor')
        weights = network.weights
        truth = precision_to_partial_correlation(chain_precision(4, 0.4), ['A', 'B', 'C', 'D'])

        assert weights.loc['A', 'B'] == pytest.approx(truth.loc['A', 'B'], abs=0.08)
        assert weights.loc['B', 'C'] == pytest.approx(truth.loc['B', 'C'], abs=0.08)
        assert weights.loc['C', 'D'] == pytest.approx(truth.loc['C', 'D'], abs=0.08)
        assert min(weights.loc['A', 'B'], weights.loc['B', 'C'], weights.loc['C', 'D']) > 0.2
        assert abs(weights.loc['A', 'C']) < 0.08
        assert abs(weights.loc['A', 'D']) < 0.08
        assert abs(weights.loc['B', 'D']) < 0.08

    def test_correlation_network_links_indirect_pairs(self, chain_data):
        network = estimate_network(chain_data, estimator='cor')
        assert network.weights.loc['A', 'C'] > 0.1

    def test_symmetric_and_bounded(self, five_factor_data):
        network = estimate_network(five_factor_data, estimator='pcor')
        values = network.weights.to_numpy()
        assert np.allclose(values, values.T)
        assert np.all(np.abs(values) <= 1.0)
        assert np.allclose(np.diag(values), 0.0)

    def test_singular_matrix_raises(self, small_data):
        data = small_data.copy()
        data['V5'] = data['V1'] + data['V2']
        with pytest.raises(ValueError):
            estimate_network(data, estimator='pcor')

    def test_perfectly_collinear_pair_raises(self, small_data):
        data = small_data.copy()
        data['V5'] = 2.0 * data['V1'] + 1.0
        with pytest.raises(ValueError, match='V1--V5'):
            estimate_network(data, estimator='cor')

    def test_missing_values_raise(self, small_data):
        data = small_data.copy()
        data.iloc[0, 0] = np.nan
        with pytest.raises(ValueError):
            estimate_network(data)

    def test_partial_correlation_from_identity(self):
        corr = pd.DataFrame(np.eye(3), index=list('xyz'), columns=list('xyz'))
        pcor = partial_correlation_matrix(corr)
        assert np.allclose(pcor.to_numpy(), 0.0)


class TestPruning:

    def test_pruning_never_increases_weights(self, five_factor_data):
        full = estimate_network(five_factor_data, estimator='pcor', prune=None)
        pruned = estimate_network(five_factor_data, estimator='pcor', prune='sig', alpha=0.05)

        full_w = full.weights.to_numpy()
        pruned_w = pruned.weights.to_numpy()
        assert np.all(np.abs(pruned_w) <= np.abs(full_w) + 1e-12)
        kept = pruned_w != 0
        assert np.allclose(pruned_w[kept], full_w[kept])
        assert pruned.n_edges < full.n_edges

    def test_pruned_edges_stay_zero_downstream(self, five_factor_data):
        network = estimate_network(five_factor_data, estimator='pcor', prune='sig')
        mask = network.pruned.to_numpy()
        assert mask.any()
        assert np.all(network.weights.to_numpy()[mask] == 0.0)

        graph = network.to_networkx()
        edges = network.edgelist()
        nodes = network.nodes
        for i, j in zip(*np.nonzero(np.triu(mask, k=1))):
            assert not graph.has_edge(nodes[i], nodes[j])
            pair = ((edges['from'] == nodes[i]) & (edges['to'] == nodes[j]))
            assert not pair.any()

        table = compute_centrality(network)
        expected_strength = network.weights.abs().sum(axis=1)
        pd.testing.assert_series_equal(table['Strength'], expected_strength,
                                       check_names=False, check_index_type=False)

    def test_stricter_adjustment_prunes_more(self, five_factor_data):
        none = estimate_network(five_factor_data, prune='sig', adjust='none')
        bonf = estimate_network(five_factor_data, prune='sig', adjust='bonferroni')
        fdr = estimate_network(five_factor_data, prune='sig', adjust='fdr')
        assert bonf.n_edges <= fdr.n_edges <= none.n_edges

    def test_summary_reports_pruning(self, five_factor_data):
        network = estimate_network(five_factor_data, prune='sig', alpha=0.01)
        summary = network.summary()
        assert summary['prune'] == 'sig'
        assert summary['alpha'] == 0.01
        assert summary['n_pruned'] + summary['n_edges'] <= 25 * 24 // 2

    def test_glasso_with_sig_pruning_raises(self, small_data):
        with pytest.raises(ValueError):
            estimate_network(small_data, estimator='glasso', prune='sig')
        with pytest.raises(ValueError):
            NetworkEstimationConfig(estimator='glasso', prune='sig')


class TestPValues:

    def test_zero_correlation_has_p_one(self):
        weights = pd.DataFrame(np.zeros((3, 3)), index=list('abc'), columns=list('abc'))
        p = correlation_pvalues(weights, n_observations=100)
        iu = np.triu_indices(3, k=1)
        assert np.allclose(p.to_numpy()[iu], 1.0)

    def test_insufficient_degrees_of_freedom_raises(self):
        weights = pd.DataFrame(np.zeros((3, 3)), index=list('abc'), columns=list('abc'))
        with pytest.raises(ValueError):
            correlation_pvalues(weights, n_observations=3, n_controls=1)

    def test_bonferroni_scales_by_number_of_pairs(self):
        p = pd.DataFrame([[0.0, 0.01, 0.02], [0.01, 0.0, 0.5], [0.02, 0.5, 0.0]],
                         index=list('abc'), columns=list('abc'))
        adjusted = adjust_pvalues(p, 'bonferroni')
        assert adjusted.loc['a', 'b'] == pytest.approx(0.03)
        assert adjusted.loc['b', 'c'] == pytest.approx(1.0)
        assert adjusted.loc['c', 'a'] == pytest.approx(0.06)

    def test_unknown_adjustment_raises(self):
        p = pd.DataFrame(np.zeros((2, 2)))
        with pytest.raises(ValueError):
            adjust_pvalues(p, 'holm')


class TestGlasso:

    def test_chain_is_sparse_and_recovers_neighbours(self, chain_data):
        network = estimate_network(chain_data, estimator='glasso', n_lambda=30)
        weights = network.weights

        assert weights.loc['A', 'B'] > 0.2
        assert weights.loc['B', 'C'] > 0.2
        assert abs(weights.loc['A', 'D']) < 0.05
        assert 'lambda' in network.info
        assert network.info['prune'] is None

    def test_from_config(self, small_data):
        config = NetworkEstimationConfig(estimator='glasso', prune=None, n_lambda=20)
        network = estimate_from_config(small_data, config)
        values = network.weights.to_numpy()
        assert network.estimator == 'glasso'
        assert np.allclose(values, values.T)
        assert np.all(np.abs(values) <= 1.0)


def test_spearman_correlation_option(small_data):
    network = estimate_network(small_data, estimator='cor', cor_method='spearman')
    expected = correlation_matrix(small_data, method='spearman')
    assert network.weights.loc['V1', 'V2'] == pytest.approx(expected.loc['V1', 'V2'])
    assert network.info['cor_method'] == 'spearman'
