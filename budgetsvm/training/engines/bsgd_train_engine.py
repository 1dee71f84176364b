#!filepath: budgetsvm/training/engines/bsgd_train_engine.py
from __future__ import annotations

from time import perf_counter
from typing import List, Optional, Tuple

import numpy as np

from budgetsvm import logs
from budgetsvm.config.svm_config import SVMConfig
from budgetsvm.core.kernels import KernelEvaluator, UserKernel
from budgetsvm.dataloader.streaming_dataset import StreamingDataset
from budgetsvm.training.engines.model_train_engine import ModelTrainEngine
from budgetsvm.training.engines.train_result import PredictResult, TrainResult
from budgetsvm.training.maintenance import BudgetMaintainer
from budgetsvm.training.model import BSGDModel
from budgetsvm.utils.errors import ConfigurationError
from budgetsvm.utils.reporter import Reporter


class BSGDTrainEngine(ModelTrainEngine):
    """
    Budgeted SGD（多类别，核 SVM）

    每个样本 x_t（t 跨 epoch 递增）：
      1) f_c(x) = Σ alpha_{sv,c} K(sv, x)
      2) 所有 alpha 乘 (1 - 1/t)
      3) r = argmax_{c != y} f_c；若 1 + f_r - f_y > 0：
         x 加入支持向量，alpha_y = 1/(λt)，alpha_r = -1/(λt)
      4) BudgetMaintainer.maintain(support_vectors)
    """

    def __init__(
        self,
        cfg: SVMConfig,
        *,
        chunk_width: int = 1000,
        user_kernel: Optional[UserKernel] = None,
        reporter: Reporter | None = None,
    ):
        super().__init__(cfg, reporter=reporter)
        self.chunk_width = chunk_width
        self.user_kernel = user_kernel

    # --------------------------------------------------
    # helpers
    # --------------------------------------------------
    def _sync_model(self, model: BSGDModel, data: StreamingDataset) -> None:
        """chunk 读入后：补齐类别、扩展维度。"""
        labels = data.labels
        if labels[: model.num_classes] != model.labels:
            self.reporter.fatal(
                ConfigurationError(
                    f"training labels {labels} do not extend the model labels {model.labels}"
                )
            )
        if len(labels) > model.num_classes:
            model.set_labels(labels)

        needed = data.dimension_highest_seen + (1 if model.bias_term != 0.0 else 0)
        if needed > model.dimension:
            if self.cfg.dimension and model.dimension:
                self.reporter.warning(
                    f"found {data.dimension_highest_seen} features, more than the specified "
                    f"dimension {self.cfg.dimension}; extending the model"
                )
            model.extend_dimensionality(needed)

    def _step(
        self,
        model: BSGDModel,
        data: StreamingDataset,
        row: int,
        t: int,
        evaluator: KernelEvaluator,
        maintainer: BudgetMaintainer,
    ) -> Tuple[bool, int]:
        y = data.label_index(row)
        scores = model.class_scores(data, row, evaluator)

        for sv in model.support_vectors:
            sv.downgrade(t)

        if model.num_classes < 2:
            return False, 0

        rival_scores = scores.copy()
        rival_scores[y] = -np.inf
        r = int(np.argmax(rival_scores))
        mistake = bool(scores[r] >= scores[y])

        if 1.0 + scores[r] - scores[y] > 0.0:
            step = 1.0 / (self.cfg.lambda_param * t)
            sv = model.new_support_vector(data, row, reporter=self.reporter)
            sv.alphas[y] = step
            sv.alphas[r] = -step
            return mistake, len(maintainer.maintain(model.support_vectors))

        return mistake, 0

    # --------------------------------------------------
    # train
    # --------------------------------------------------
    @logs.catch(msg="BSGD training failed")
    def train(
        self,
        *,
        data: StreamingDataset,
        prev_model: BSGDModel | None = None,
    ) -> TrainResult:
        cfg = self.cfg
        cfg.check_training_setup(self.reporter)
        if not data.is_training:
            self.reporter.fatal(
                ConfigurationError("train() needs a training-mode dataset (labels=None)")
            )

        model = prev_model or BSGDModel.from_config(cfg, self.chunk_width)
        evaluator = model.kernel_evaluator(user_kernel=self.user_kernel, reporter=self.reporter)
        maintainer = BudgetMaintainer.from_config(cfg, kernel=evaluator, reporter=self.reporter)
        rng = np.random.default_rng(cfg.seed)

        self.reporter.info(f"*** Training started with the following parameters:\n{cfg.describe()}")

        t = model.iterations
        mistakes = 0
        seen = 0
        events = 0
        start = perf_counter()

        for epoch in range(cfg.num_epochs):
            epoch_mistakes = 0
            epoch_seen = 0
            while True:
                more = data.load_next_chunk()
                self._sync_model(model, data)

                order = rng.permutation(data.num_rows) if cfg.randomize else range(data.num_rows)
                for row in order:
                    t += 1
                    mistake, n_events = self._step(model, data, int(row), t, evaluator, maintainer)
                    epoch_mistakes += int(mistake)
                    epoch_seen += 1
                    events += n_events

                if not more:
                    break

            mistakes += epoch_mistakes
            seen += epoch_seen
            self.reporter.info(
                f"epoch {epoch + 1}/{cfg.num_epochs}: {epoch_seen} examples, "
                f"online error {epoch_mistakes / max(epoch_seen, 1):.4f}, "
                f"{model.num_support_vectors} support vectors"
            )

        model.iterations = t
        # 推断出维度后固定核宽度，保存 / 预测时保持一致
        model.gamma = evaluator.gamma

        metrics = {
            "epochs": cfg.num_epochs,
            "iterations": t,
            "support_vectors": model.num_support_vectors,
            "maintenance_events": events,
            "online_error_rate": mistakes / max(seen, 1),
            "train_time": perf_counter() - start,
            "load_time": data.load_time,
        }
        return TrainResult(model=model, metrics=metrics)

    # --------------------------------------------------
    # predict
    # --------------------------------------------------
    @logs.catch(msg="BSGD prediction failed")
    def predict(self, *, data: StreamingDataset, model: BSGDModel) -> PredictResult:
        if data.is_training:
            self.reporter.fatal(
                ConfigurationError("predict() needs an evaluation dataset built with labels=model.labels")
            )
        if model.num_classes == 0:
            self.reporter.fatal(ConfigurationError("model has no classes; was it trained?"))

        evaluator = model.kernel_evaluator(user_kernel=self.user_kernel, reporter=self.reporter)
        labels: List[int] = []
        scores: List[float] = []
        errors = 0

        while True:
            more = data.load_next_chunk()
            if data.dimension_highest_seen + (1 if model.bias_term != 0.0 else 0) > model.dimension:
                model.extend_dimensionality(
                    data.dimension_highest_seen + (1 if model.bias_term != 0.0 else 0)
                )

            for t in range(data.num_rows):
                f = model.class_scores(data, t, evaluator)
                winner = int(np.argmax(f))
                labels.append(model.labels[winner])
                scores.append(float(f[winner]))
                errors += int(winner != data.label_index(t))

            if not more:
                break

        n = len(labels)
        error_rate = errors / n if n else 0.0
        self.reporter.info(f"*** Testing completed: {n} examples, error rate {error_rate * 100:.2f}%")
        return PredictResult(
            labels=np.asarray(labels, dtype=np.int64),
            scores=np.asarray(scores, dtype=np.float64),
            error_rate=error_rate,
        )
