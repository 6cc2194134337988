"""
공용 테스트 fixture
"""

import matplotlib

matplotlib.use('Agg')

from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest
from semopy import Model

from psychonetwork.simulation import chain_precision, simulate_five_factor_data, simulate_ggm_data


@pytest.fixture
def five_factor_data():
    """bfi 문항 이름을 갖는 5요인 리커트 데이터 (결측 없음)"""
    return simulate_five_factor_data(n=400, seed=7)


@pytest.fixture
def chain_data():
    """A - B - C - D 사슬 구조 GGM 데이터"""
    return simulate_ggm_data(chain_precision(4, 0.4), n=2000, columns=['A', 'B', 'C', 'D'], seed=11)


@pytest.fixture
def small_data():
    """빠른 테스트용 작은 정규 데이터"""
    rng = np.random.default_rng(3)
    base = rng.standard_normal((200, 1))
    values = 0.6 * base + 0.8 * rng.standard_normal((200, 5))
    return pd.DataFrame(values, columns=['V1', 'V2', 'V3', 'V4', 'V5'])


@pytest.fixture
def non_converging_fit(monkeypatch):
    """semopy 적합은 그대로 수행하되 최적화 결과를 미수렴으로 보고"""
    original_fit = Model.fit

    def fit(self, *args, **kwargs):
        original_fit(self, *args, **kwargs)
        return SimpleNamespace(success=False, n_it=1000, fun=0.0, message='Iteration limit reached')

    monkeypatch.setattr(Model, 'fit', fit)
