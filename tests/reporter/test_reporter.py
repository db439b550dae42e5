# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for the reporters writing the evaluated model."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from ortolan.errors import ModelSerializationError
from ortolan.model.ort_result import OrtResult
from ortolan.reporter.evaluated_model import EvaluatedModel
from ortolan.reporter.evaluated_model_mapper import ReporterInput
from ortolan.reporter.reporter import EvaluatedModelJsonReporter, EvaluatedModelYamlReporter


def test_json_reporter(ort_result: OrtResult, tmp_path: Path) -> None:
    """Test writing the evaluated model as JSON."""
    path = EvaluatedModelJsonReporter().generate(os.path.join(tmp_path, "reports"), ReporterInput(ort_result))

    assert path == os.path.join(tmp_path, "reports", "evaluated-model.json")
    with open(path, encoding="utf-8") as file:
        model = EvaluatedModel.from_json(file.read())
    assert len(model.packages) == 8


def test_yaml_reporter(ort_result: OrtResult, tmp_path: Path) -> None:
    """Test writing the evaluated model as YAML."""
    path = EvaluatedModelYamlReporter().generate(str(tmp_path), ReporterInput(ort_result))

    assert path is not None
    with open(path, encoding="utf-8") as file:
        data = yaml.safe_load(file)
    assert data["custom_data"] == {"job": "nightly"}
    assert EvaluatedModel.from_dict(data).packages[0].id.name == "app"


def test_json_indent(ort_result: OrtResult, tmp_path: Path) -> None:
    """Test writing compact JSON."""
    path = EvaluatedModelJsonReporter(indent=None).generate(str(tmp_path), ReporterInput(ort_result))
    assert path is not None
    with open(path, encoding="utf-8") as file:
        text = file.read()
    assert "\n" not in text
    assert json.loads(text)["statistics"]["open_issues"]["errors"] == 1


def test_unwritable_target(ort_result: OrtResult, tmp_path: Path) -> None:
    """Test that a target that cannot be written gives no path."""
    os.makedirs(os.path.join(tmp_path, "evaluated-model.json"))
    assert EvaluatedModelJsonReporter().generate(str(tmp_path), ReporterInput(ort_result)) is None


def test_serialization_error(ort_result: OrtResult, tmp_path: Path) -> None:
    """Test that a model that cannot be serialized is not written."""
    with patch.object(EvaluatedModel, "to_json", side_effect=ModelSerializationError("dangling reference")):
        target_dir = os.path.join(tmp_path, "reports")
        assert EvaluatedModelJsonReporter().generate(target_dir, ReporterInput(ort_result)) is None
    assert not os.path.exists(target_dir)


@pytest.mark.parametrize("text", ["not json", "[]"])
def test_invalid_model_json(text: str) -> None:
    """Test reading text that is not an evaluated model."""
    with pytest.raises(ModelSerializationError):
        EvaluatedModel.from_json(text)


def test_dangling_reference() -> None:
    """Test that a reference to a missing entry is reported."""
    data = {"licenses": [], "packages": [{"_id": 0, "id": "NPM::a:1.0", "declared_licenses": [3]}]}
    with pytest.raises(ModelSerializationError):
        EvaluatedModel.from_dict(data)
