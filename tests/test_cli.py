import pytest
from typer.testing import CliRunner

from budgetsvm import __version__
from budgetsvm.cli import app
from budgetsvm.training.model_io import load_model

runner = CliRunner()


@pytest.fixture(autouse=True)
def run_in_tmp(tmp_path, monkeypatch):
    # AppConfig.load 会读取当前目录下的 .env
    monkeypatch.chdir(tmp_path)


def _train(train_file, model_file, *extra):
    return runner.invoke(
        app,
        ["train", str(train_file), str(model_file), "-g", "0.5", "-L", "0.01", "--no-randomize", *extra],
    )


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_train_then_predict(four_rows_file, tmp_path):
    model_file = tmp_path / "four.model"
    result = _train(four_rows_file, model_file, "-B", "10", "-e", "5")
    assert result.exit_code == 0, result.stdout
    assert model_file.exists()

    model = load_model(model_file)
    assert model.labels == [1, -1]
    assert model.gamma == 0.5
    assert model.iterations == 20

    out = tmp_path / "pred.txt"
    result = runner.invoke(app, ["predict", str(four_rows_file), str(model_file), str(out)])
    assert result.exit_code == 0, result.stdout
    assert out.read_text().split() == ["1", "1", "-1", "-1"]


def test_predict_with_scores(four_rows_file, tmp_path):
    model_file = tmp_path / "four.model"
    assert _train(four_rows_file, model_file).exit_code == 0

    out = tmp_path / "pred.txt"
    result = runner.invoke(app, ["predict", str(four_rows_file), str(model_file), str(out), "-o"])
    assert result.exit_code == 0
    lines = [line.split() for line in out.read_text().splitlines()]
    assert [line[0] for line in lines] == ["1", "1", "-1", "-1"]
    assert all(float(line[1]) > 0.0 for line in lines)


def test_model_path_defaults_next_to_training_file(four_rows_file):
    result = runner.invoke(app, ["train", str(four_rows_file), "-g", "0.5", "-e", "1"])
    assert result.exit_code == 0
    assert four_rows_file.with_name(four_rows_file.name + ".model").exists()


def test_gaussian_without_gamma_fails(four_rows_file, tmp_path):
    result = runner.invoke(app, ["train", str(four_rows_file), str(tmp_path / "m.model")])
    assert result.exit_code == 1
    assert not (tmp_path / "m.model").exists()


def test_dimension_instead_of_gamma(four_rows_file, tmp_path):
    result = runner.invoke(
        app, ["train", str(four_rows_file), str(tmp_path / "m.model"), "-D", "3", "-e", "1"]
    )
    assert result.exit_code == 0
    assert load_model(tmp_path / "m.model").gamma == pytest.approx(1 / 3)


def test_merging_with_linear_kernel_fails(four_rows_file, tmp_path):
    result = _train(four_rows_file, tmp_path / "m.model", "-k", "linear", "-m", "merging")
    assert result.exit_code == 1


def test_missing_training_file_fails(tmp_path):
    result = _train(tmp_path / "nope.txt", tmp_path / "m.model")
    assert result.exit_code == 1


def test_predict_with_broken_model_fails(four_rows_file, tmp_path):
    bad = tmp_path / "bad.model"
    bad.write_text("not a model\n")
    result = runner.invoke(app, ["predict", str(four_rows_file), str(bad), str(tmp_path / "o.txt")])
    assert result.exit_code == 1
