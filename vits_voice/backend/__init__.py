from vits_voice.backend.session import InferenceBackend, OnnxSession
from vits_voice.backend.tensors import TensorBuffers

__all__ = ["InferenceBackend", "OnnxSession", "TensorBuffers"]
