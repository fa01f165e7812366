from ucbcore.calibration.calibration import CalibrationModel, apply_calibration_model, generate_calibration_model
from ucbcore.core.config import CalibrationConfig, NoiseConfig
from ucbcore.core.data import FrequencyData
from ucbcore.core.errors import DomainViolation, NonFiniteLikelihood, NonPositivePSD, SchemaMismatch, UCBModelError
from ucbcore.core.model import Model, ModelStatus
from ucbcore.core.source import ParameterCodec, Source
from ucbcore.core.state import ChainContext
from ucbcore.kernels.comparison import compare_model
from ucbcore.likelihoods.gaussian import LikelihoodEvaluator, update_max_log_likelihood
from ucbcore.noise.noisemodels import generate_noise_model
from ucbcore.optimizers.maximize import maximize_signal_model
from ucbcore.samplers.engine import ChainEngine
from ucbcore.waveforms.ucb import generate_model_signal, generate_signal_model, update_signal_model

__version__ = "0.1.0"

__all__ = [
    "CalibrationConfig",
    "CalibrationModel",
    "ChainContext",
    "ChainEngine",
    "DomainViolation",
    "FrequencyData",
    "LikelihoodEvaluator",
    "Model",
    "ModelStatus",
    "NoiseConfig",
    "NonFiniteLikelihood",
    "NonPositivePSD",
    "ParameterCodec",
    "SchemaMismatch",
    "Source",
    "UCBModelError",
    "apply_calibration_model",
    "compare_model",
    "generate_calibration_model",
    "generate_model_signal",
    "generate_noise_model",
    "generate_signal_model",
    "maximize_signal_model",
    "update_max_log_likelihood",
    "update_signal_model",
]
