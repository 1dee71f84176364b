#!filepath: budgetsvm/cli.py
from pathlib import Path
from typing import Optional

import typer
from rich import print

from budgetsvm import __version__
from budgetsvm.config.app_config import AppConfig
from budgetsvm.config.svm_config import KernelType, MaintenanceStrategy, SVMConfig
from budgetsvm.dataloader.streaming_dataset import StreamingDataset
from budgetsvm.training.engines.registry import resolve_model_train_engine
from budgetsvm.training.model_io import load_model, save_model
from budgetsvm.utils.errors import BudgetedSVMError
from budgetsvm.utils.logger import init_logging
from budgetsvm.utils.reporter import Reporter

app = typer.Typer(help="Budgeted SVM CLI (train / predict on LIBSVM files)")


def _print_fatal(error: BudgetedSVMError) -> None:
    print(f"[red]Error:[/red] {error}")


def _make_reporter(verbose: bool) -> Reporter:
    return Reporter(verbose=verbose, on_fatal=_print_fatal)


@app.command()
def version():
    print(f"v{__version__}")


@app.command()
def train(
    train_file: Path = typer.Argument(..., help="LIBSVM training file"),
    model_file: Optional[Path] = typer.Argument(None, help="output model (default: TRAIN_FILE.model)"),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML config (default: bundled base.yml)"),
    budget: Optional[int] = typer.Option(None, "-B", "--budget", help="budget size"),
    lambda_param: Optional[float] = typer.Option(None, "-L", "--lambda", help="regularization lambda"),
    epochs: Optional[int] = typer.Option(None, "-e", "--epochs"),
    kernel: Optional[KernelType] = typer.Option(None, "-k", "--kernel"),
    gamma: Optional[float] = typer.Option(None, "-g", "--gamma", help="RBF width (0 = 1/dimension)"),
    degree: Optional[float] = typer.Option(None, "-d", "--degree"),
    coef: Optional[float] = typer.Option(None, "-i", "--coef"),
    maintenance: Optional[MaintenanceStrategy] = typer.Option(None, "-m", "--maintenance"),
    dimension: Optional[int] = typer.Option(None, "-D", "--dimension", help="0 = infer from data"),
    chunk_size: Optional[int] = typer.Option(None, "-z", "--chunk-size"),
    chunk_width: Optional[int] = typer.Option(None, "-w", "--chunk-width"),
    seed: Optional[int] = typer.Option(None, "--seed"),
    randomize: Optional[bool] = typer.Option(None, "--randomize/--no-randomize"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
):
    """
    训练 BSGD 模型并写出模型文件
    """
    cfg = AppConfig.load(str(config) if config else None)
    init_logging(cfg.log)
    reporter = _make_reporter(verbose or cfg.svm.verbose)

    overrides = {
        "budget_size": budget,
        "lambda_param": lambda_param,
        "num_epochs": epochs,
        "kernel": kernel,
        "gamma": gamma,
        "degree": degree,
        "coef": coef,
        "maintenance": maintenance,
        "dimension": dimension,
        "seed": seed,
        "randomize": randomize,
    }
    data_cfg = cfg.data.model_copy(
        update={k: v for k, v in {"chunk_size": chunk_size, "chunk_width": chunk_width}.items() if v is not None}
    )
    model_file = model_file or train_file.with_name(train_file.name + ".model")

    try:
        fields = cfg.svm.model_dump()
        fields.update({k: v for k, v in overrides.items() if v is not None})
        svm_cfg = SVMConfig.create(reporter=reporter, **fields)

        engine = resolve_model_train_engine(
            cfg=svm_cfg, reporter=reporter, chunk_width=data_cfg.chunk_width
        )
        print(f"[green]Training on {train_file}[/green]")
        with StreamingDataset.from_config(train_file, data_cfg, svm_cfg, reporter=reporter) as data:
            result = engine.train(data=data)
        save_model(result.model, model_file, reporter=reporter)
    except BudgetedSVMError:
        raise typer.Exit(code=1)

    m = result.metrics
    print(
        f"[blue]Model saved to {model_file}[/blue] "
        f"({m['support_vectors']} support vectors, {m['iterations']} iterations, "
        f"{m['train_time']:.2f}s)"
    )


@app.command()
def predict(
    test_file: Path = typer.Argument(..., help="LIBSVM test file"),
    model_file: Path = typer.Argument(..., help="model written by `train`"),
    output_file: Path = typer.Argument(..., help="predicted labels, one per line"),
    config: Optional[Path] = typer.Option(None, "--config"),
    output_scores: bool = typer.Option(False, "-o", "--output-scores", help="also write the winning score"),
    chunk_size: Optional[int] = typer.Option(None, "-z", "--chunk-size"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
):
    """
    用已保存的模型预测，写出标签并报告错误率
    """
    cfg = AppConfig.load(str(config) if config else None)
    init_logging(cfg.log)
    reporter = _make_reporter(verbose or cfg.svm.verbose)

    try:
        model = load_model(model_file, reporter=reporter)
        svm_cfg = SVMConfig.create(
            reporter=reporter,
            algorithm=model.algorithm,
            kernel=model.kernel,
            gamma=model.gamma,
            degree=model.degree,
            coef=model.coef,
            dimension=model.dimension,
        )
        engine = resolve_model_train_engine(cfg=svm_cfg, reporter=reporter, chunk_width=model.chunk_width)
        with StreamingDataset(
            test_file,
            chunk_size=chunk_size or cfg.data.chunk_size,
            labels=model.labels,
            bias_term=model.bias_term,
            reporter=reporter,
        ) as data:
            result = engine.predict(data=data, model=model)
    except BudgetedSVMError:
        raise typer.Exit(code=1)

    with open(output_file, "w", encoding="utf-8") as fh:
        for label, score in zip(result.labels, result.scores):
            fh.write(f"{label} {float(score)!r}\n" if (output_scores or cfg.svm.output_scores) else f"{label}\n")

    print(
        f"[green]{result.num_examples} predictions written to {output_file}[/green], "
        f"error rate {result.error_rate * 100:.2f}%"
    )


if __name__ == "__main__":
    app()

# python -m budgetsvm.cli train data/a9a.txt -B 100 -g 0.1
