from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Protocol, Tuple

import numpy as np
import onnxruntime as ort
from loguru import logger

from tonic_tts.config import EngineSettings
from tonic_tts.errors import ModelLoadError, Stage
from tonic_tts.sources import ByteSource, PathSource

# Feed names in the order each exported graph declares its inputs.
STAGE_INPUTS: Dict[Stage, Tuple[str, ...]] = {
    Stage.DURATION_PREDICTOR: ("text_ids", "style_dp", "text_mask"),
    Stage.TEXT_ENCODER: ("text_ids", "style_ttl", "text_mask"),
    Stage.VECTOR_ESTIMATOR: (
        "noisy_latent",
        "text_emb",
        "style_ttl",
        "latent_mask",
        "text_mask",
        "current_step",
        "total_step",
    ),
    Stage.VOCODER: ("latent",),
}


class StageExecutor(Protocol):
    """Opaque tensor-graph executor: named inputs in, outputs in graph order."""

    def run(self, feed: Mapping[str, np.ndarray]) -> List[np.ndarray]:
        ...


def session_options(settings: EngineSettings) -> ort.SessionOptions:
    opts = ort.SessionOptions()
    opts.log_severity_level = 3
    opts.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
    if settings.intra_op_threads:
        opts.intra_op_num_threads = settings.intra_op_threads
    if settings.inter_op_threads:
        opts.inter_op_num_threads = settings.inter_op_threads
    return opts


class OnnxStage:
    """One ONNX Runtime session bound to a pipeline stage."""

    def __init__(self, stage: Stage, session: ort.InferenceSession) -> None:
        self.stage = stage
        self.session = session
        self.input_names = [node.name for node in session.get_inputs()]
        expected = STAGE_INPUTS[stage]
        self._positional = set(self.input_names) != set(expected)
        if self._positional and len(self.input_names) != len(expected):
            raise ModelLoadError(
                f"{stage.value} graph",
                f"declares {len(self.input_names)} inputs {self.input_names}, expected {len(expected)}",
            )
        if self._positional:
            logger.debug(
                "stages.positional_binding stage={stage} graph_inputs={names}",
                stage=stage.value,
                names=self.input_names,
            )

    @classmethod
    def load(
        cls,
        stage: Stage,
        source: ByteSource,
        settings: Optional[EngineSettings] = None,
    ) -> "OnnxStage":
        """Build a session from a path-backed or buffer-backed source.

        Raises:
            ModelLoadError: If the file is missing or ONNX Runtime rejects the graph.
        """
        settings = settings or EngineSettings()
        providers = settings.resolve_providers(ort.get_available_providers())
        logger.info(
            "stages.load stage={stage} source={source} providers={providers}",
            stage=stage.value,
            source=source.describe(),
            providers=providers,
        )
        try:
            model = str(source.path) if isinstance(source, PathSource) else source.read_bytes()
            session = ort.InferenceSession(
                model, sess_options=session_options(settings), providers=providers
            )
        except Exception as exc:  # onnxruntime raises its own untyped errors
            raise ModelLoadError(source.describe(), f"{type(exc).__name__}: {exc}") from exc
        return cls(stage, session)

    def run(self, feed: Mapping[str, np.ndarray]) -> List[np.ndarray]:
        if self._positional:
            ordered = [feed[name] for name in STAGE_INPUTS[self.stage]]
            feed = dict(zip(self.input_names, ordered))
        return list(self.session.run(None, dict(feed)))
