# tests/training/conftest.py
from __future__ import annotations

import pytest

from budgetsvm.config.svm_config import KernelType, SVMConfig


@pytest.fixture
def bsgd_cfg():
    """
    四行场景下的 BSGD 配置（顺序遍历，结果可复现）
    """

    def _make(**overrides) -> SVMConfig:
        fields = dict(
            kernel=KernelType.GAUSSIAN,
            gamma=0.5,
            budget_size=10,
            lambda_param=0.01,
            num_epochs=5,
            randomize=False,
        )
        fields.update(overrides)
        return SVMConfig(**fields)

    return _make
