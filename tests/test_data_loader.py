"""
Item Data Loader 테스트
"""

import numpy as np
import pandas as pd
import pytest

from psychonetwork.config import DEFAULT_FACTOR_ITEMS
from psychonetwork.data_loader import ItemDataLoader, describe_items, load_observations
from psychonetwork.simulation import simulate_five_factor_data

ITEMS = [item for items in DEFAULT_FACTOR_ITEMS.values() for item in items]


@pytest.fixture
def raw_with_missing():
    raw = simulate_five_factor_data(n=100, seed=1)
    raw.loc[0, 'A1'] = np.nan
    raw.loc[5, 'N3'] = np.nan
    raw.loc[5, 'O2'] = np.nan
    raw.loc[9, :] = np.nan
    raw['gender'] = 1
    return raw


class TestItemDataLoader:
    """ItemDataLoader 테스트 클래스"""

    def test_listwise_deletion_counts(self, raw_with_missing):
        loader = ItemDataLoader()
        data, report = loader.prepare(raw_with_missing)

        assert report.n_rows_before == 100
        assert report.n_rows_after == 97
        assert report.n_rows_removed == 3
        assert report.all_missing_rows == 1
        assert len(data) == 97
        assert not data.isna().any().any()

    def test_selects_items_in_order(self, raw_with_missing):
        data, _ = ItemDataLoader().prepare(raw_with_missing)
        assert list(data.columns) == ITEMS
        assert 'gender' not in data.columns

    def test_missing_item_column_raises(self):
        raw = simulate_five_factor_data(n=50, seed=2).drop(columns=['E4'])
        with pytest.raises(ValueError, match='E4'):
            ItemDataLoader().prepare(raw)

    def test_all_missing_item_raises(self):
        raw = simulate_five_factor_data(n=50, seed=2)
        raw['C3'] = np.nan
        with pytest.raises(ValueError):
            ItemDataLoader().prepare(raw)

    def test_non_numeric_values_become_missing(self):
        raw = simulate_five_factor_data(n=50, seed=2).astype(object)
        raw.loc[3, 'A2'] = 'n/a'
        data, report = ItemDataLoader().prepare(raw)
        assert report.n_rows_removed == 1
        assert len(data) == 49

    def test_reverse_code(self):
        raw = pd.DataFrame({'A1': [1.0, 2.0, 6.0], 'A2': [3.0, 4.0, 5.0]})
        loader = ItemDataLoader(items=['A1', 'A2'], reverse_items=['A1'], scale_range=(1, 6))
        data, _ = loader.prepare(raw)
        assert data['A1'].tolist() == [6.0, 5.0, 1.0]
        assert data['A2'].tolist() == [3.0, 4.0, 5.0]

    def test_unknown_reverse_item_raises(self):
        with pytest.raises(ValueError):
            ItemDataLoader(items=['A1', 'A2'], reverse_items=['Z9'])

    def test_load_csv_with_row_names(self, tmp_path):
        raw = simulate_five_factor_data(n=30, seed=4)
        raw.index = [f"r{i}" for i in range(30)]
        path = tmp_path / 'bfi.csv'
        raw.to_csv(path)

        data, report = load_observations(path)
        assert data.shape == (30, 25)
        assert report.n_rows_removed == 0
        assert data.index[0] == 'r0'

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_observations(tmp_path / 'nope.csv')

    def test_empty_file_raises(self, tmp_path):
        path = tmp_path / 'empty.csv'
        path.write_text('')
        with pytest.raises(ValueError):
            load_observations(path)


def test_describe_items_flags_zero_variance():
    data = pd.DataFrame({'a': [1.0, 2.0, 3.0], 'b': [2.0, 2.0, 2.0]})
    summary = describe_items(data)
    assert bool(summary.loc['b', 'zero_variance'])
    assert not bool(summary.loc['a', 'zero_variance'])
    assert summary.loc['a', 'mean'] == pytest.approx(2.0)
