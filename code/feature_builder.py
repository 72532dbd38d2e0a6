"""
Fee Model Features
==================
Assembles model inputs from the fee-rate histograms and queries a
pre-trained estimator.

The model directory holds:
- mean-std.json: {"mean": {...}, "std": {...}, "fields": [...]}
- model.joblib: estimator exposing predict(X)

Inputs are z-score normalized in the order given by `fields`.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, List, Sequence

import joblib
import numpy as np
import pandas as pd

from fee_errors import ModelInputError

logger = logging.getLogger(__name__)

BLOCK_TARGETS = (1, 3, 6, 36, 72, 144, 432, 1008)
MIN_BLOCK_TARGET = 1
MAX_BLOCK_TARGET = 1008

FIELDS_FILE = "mean-std.json"
MODEL_FILE = "model.joblib"


# =============================================================================
# NORMALIZATION SCHEMA
# =============================================================================

@dataclass
class FieldsDescribe:
    """Per-field normalization statistics and the model's input order."""
    mean: Dict[str, float]
    std: Dict[str, float]
    fields: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict) -> "FieldsDescribe":
        return cls(
            mean={k: float(v) for k, v in data["mean"].items()},
            std={k: float(v) for k, v in data["std"].items()},
            fields=list(data["fields"]),
        )

    @classmethod
    def load(cls, path) -> "FieldsDescribe":
        with open(path, "r") as f:
            return cls.from_dict(json.load(f))


def validate_block_target(block_target: int) -> int:
    if not MIN_BLOCK_TARGET <= block_target <= MAX_BLOCK_TARGET:
        raise ModelInputError(
            f"block target should be between {MIN_BLOCK_TARGET} (included) "
            f"and {MAX_BLOCK_TARGET} (included), got {block_target}"
        )
    return block_target


def block_targets_with(block_target: int) -> List[int]:
    """Standard targets plus the requested one, sorted."""
    validate_block_target(block_target)
    return sorted(set(BLOCK_TARGETS) | {block_target})


# =============================================================================
# FEATURE ASSEMBLY
# =============================================================================

def build_inputs_map(
    block_histogram: Sequence[int],
    last_block_time: int,
    now: Optional[datetime] = None,
    mempool_histogram: Optional[Sequence[int]] = None,
) -> Dict[str, float]:
    """
    Raw (unnormalized) model inputs.

    Args:
        block_histogram: block window bucket counts (b0, b1, ...)
        last_block_time: header time of the last non-empty block
        now: current time (UTC), defaults to now
        mempool_histogram: mempool bucket counts (a0, a1, ...), optional
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    utc = now.astimezone(timezone.utc)

    inputs = {
        "day_of_week": float(utc.weekday()),
        "hour": float(utc.hour),
        "delta_last": float(int(utc.timestamp()) - last_block_time),
    }
    for i, count in enumerate(block_histogram):
        inputs[f"b{i}"] = float(count)
    if mempool_histogram is not None:
        for i, count in enumerate(mempool_histogram):
            inputs[f"a{i}"] = float(count)
    return inputs


def calculate_inputs(
    block_target: int,
    inputs_map: Dict[str, float],
    fields: FieldsDescribe,
) -> np.ndarray:
    """Normalized input vector for one block target, in `fields.fields` order."""
    values = dict(inputs_map)
    values["confirms_in"] = float(block_target)

    result = []
    for name in fields.fields:
        if name not in values:
            raise ModelInputError(f"missing model input: {name}")
        if name not in fields.mean or name not in fields.std:
            raise ModelInputError(f"no normalization statistics for: {name}")
        x = values[name]
        std = fields.std[name]
        centered = x - fields.mean[name]
        norm = centered / std if std else centered
        logger.debug(f"{name}:{x} norm:{norm}")
        result.append(norm)
    return np.asarray(result, dtype=np.float32)


def inputs_frame(
    block_target: int,
    inputs_map: Dict[str, float],
    fields: FieldsDescribe,
) -> pd.DataFrame:
    """Single-row DataFrame of normalized inputs with named columns."""
    row = calculate_inputs(block_target, inputs_map, fields)
    return pd.DataFrame([row], columns=fields.fields)


# =============================================================================
# MODEL ADAPTER
# =============================================================================

class FeeModel:
    """
    Thin wrapper around a serialized estimator.

    Usage:
        model = FeeModel.load("models/fee")
        rate = model.predict(inputs_frame(6, inputs_map, model.fields))
    """

    def __init__(self, estimator, fields: FieldsDescribe):
        self.estimator = estimator
        self.fields = fields

    @classmethod
    def load(cls, model_dir) -> "FeeModel":
        model_dir = Path(model_dir)
        fields = FieldsDescribe.load(model_dir / FIELDS_FILE)
        logger.info(f"Loaded {len(fields.fields)} model fields from {model_dir / FIELDS_FILE}")
        logger.info(f"Loading model: {model_dir / MODEL_FILE}")
        estimator = joblib.load(model_dir / MODEL_FILE)
        return cls(estimator, fields)

    def predict(self, inputs) -> float:
        prediction = np.ravel(self.estimator.predict(inputs))
        return float(prediction[0])

    def estimate(self, block_target: int, inputs_map: Dict[str, float]) -> float:
        """Estimated sat/vbyte to confirm within `block_target` blocks."""
        return self.predict(inputs_frame(block_target, inputs_map, self.fields))

    def estimate_all(self, block_target: int, inputs_map: Dict[str, float]) -> Dict[int, float]:
        estimates = {}
        for target in block_targets_with(block_target):
            estimates[target] = self.estimate(target, inputs_map)
            logger.info(
                f"Estimated fee to enter in {target} blocks is {estimates[target]:.2f} sat/vbyte"
            )
        return estimates
