import onnxruntime as ort
import numpy as np
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol

from vits_voice.backend.tensors import TensorBuffers
from vits_voice.config import Settings
from vits_voice.errors import InferenceError, ResourceNotFoundError
from vits_voice.logging_utils import get_logger

logger = get_logger(__name__)


class InferenceBackend(Protocol):
    """
    Opaque inference capability: named input tensors in, named output tensors out.

    Outputs come back as a TensorBuffers handle ordered like ``output_names``;
    the caller owns it and must release it.
    """
    input_names: List[str]
    output_names: List[str]

    def run(self, inputs: Mapping[str, np.ndarray]) -> TensorBuffers:
        ...


class OnnxSession:
    """ONNX Runtime session for one exported VITS graph (full model, encoder or decoder)."""
    def __init__(self, model_path: Path, settings: Optional[Settings] = None):
        self.model_path = Path(model_path)
        self.settings = settings or Settings()
        self.session = self._load_session()
        self.input_names = [node.name for node in self.session.get_inputs()]
        self.output_names = [node.name for node in self.session.get_outputs()]

    def _load_session(self) -> ort.InferenceSession:
        if not self.model_path.exists():
            raise ResourceNotFoundError(f"Model not found at {self.model_path}")

        device = self.settings.device
        available = ort.get_available_providers()
        providers = ["CPUExecutionProvider"]
        if device == "cuda":
            if "CUDAExecutionProvider" in available:
                providers.insert(0, "CUDAExecutionProvider")
            else:
                logger.warning(
                    "cuda_provider_unavailable model=%s available=%s",
                    self.model_path.name,
                    available,
                )
        elif device == "coreml":
            if "CoreMLExecutionProvider" in available:
                providers.insert(0, "CoreMLExecutionProvider")
            else:
                logger.warning(
                    "coreml_provider_unavailable model=%s available=%s",
                    self.model_path.name,
                    available,
                )

        opts = ort.SessionOptions()
        opts.graph_optimization_level = ort.GraphOptimizationLevel.ORT_DISABLE_ALL
        opts.enable_mem_pattern = False
        opts.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL
        if self.settings.intra_op_num_threads:
            opts.intra_op_num_threads = self.settings.intra_op_num_threads
        if self.settings.inter_op_num_threads:
            opts.inter_op_num_threads = self.settings.inter_op_num_threads
        logger.info(
            "ort_session_config model=%s providers=%s intra_threads=%s inter_threads=%s",
            self.model_path.name,
            providers,
            opts.intra_op_num_threads,
            opts.inter_op_num_threads,
        )
        try:
            return ort.InferenceSession(str(self.model_path), providers=providers, sess_options=opts)
        except Exception as exc:
            raise InferenceError(
                f"Failed to initialize onnxruntime inference session: `{exc}`"
            ) from exc

    def run(self, inputs: Mapping[str, np.ndarray]) -> TensorBuffers:
        # Drop inputs the graph does not declare (e.g. `sid` on single-speaker exports)
        filtered_inputs = {k: v for k, v in inputs.items() if k in self.input_names}
        try:
            outputs = self.session.run(self.output_names, filtered_inputs)
        except Exception as exc:
            raise InferenceError(f"Failed to run model inference. Error: {exc}") from exc
        return TensorBuffers(self.output_names, outputs, on_release=outputs.clear)

    def describe_io(self) -> List[Dict[str, object]]:
        """List name, shape and element type of every graph input."""
        return [
            {
                "name": node.name,
                "shape": [dim if isinstance(dim, int) else str(dim) for dim in node.shape],
                "type": node.type,
            }
            for node in self.session.get_inputs()
        ]
