"""
Shared fixtures: a two-channel band around a 3 mHz binary observed for one
year with a flat noise floor.
"""

import numpy as np
import pytest

from ucbcore.calibration.calibration import CalibrationModel
from ucbcore.core.data import FrequencyData
from ucbcore.core.model import Model
from ucbcore.core.source import ParameterCodec
from ucbcore.noise.noisemodels import FlatNoiseModel
from ucbcore.waveforms.ucb import generate_model_signal, generate_signal_model

T_OBS = 31457280.0
CARRIER = 94372
BAND_QMIN = CARRIER - 128
N_BIN = 256
PSD_LEVEL = 1.0e-38


def make_params(f_offset=0.3, costheta=0.2, phi=1.0, amp=2.0e-21, cosi=0.4, psi=0.7, phi0=2.1, fdot=1.0e-17):
    return np.array(
        [
            CARRIER + f_offset,
            costheta,
            phi,
            np.log(amp),
            cosi,
            psi,
            phi0,
            fdot * T_OBS**2,
        ]
    )


@pytest.fixture
def codec():
    return ParameterCodec(T_OBS)


@pytest.fixture
def empty_data():
    """Noise-free, signal-free band of 256 bins in 2 channels."""
    return FrequencyData.zeros(T=T_OBS, qmin=BAND_QMIN, n_bin=N_BIN, n_channel=2)


@pytest.fixture
def params():
    return make_params()


@pytest.fixture
def injected_data(empty_data, codec, params):
    """Band containing exactly one noise-free source with ``params``."""
    source = codec.decode(params)
    template = generate_signal_model(source, empty_data)
    values = empty_data.values.copy()
    values[:, source.qmin - empty_data.qmin:source.qmax - empty_data.qmin] += template
    return FrequencyData(values=values, T=T_OBS, qmin=BAND_QMIN)


@pytest.fixture
def noisy_data(injected_data):
    """Injected source plus white Gaussian noise at the flat PSD level."""
    rng = np.random.default_rng(1234)
    sigma = np.sqrt(PSD_LEVEL / 2.0)
    noise = sigma * (rng.standard_normal(injected_data.values.shape) + 1j * rng.standard_normal(injected_data.values.shape))
    return FrequencyData(values=injected_data.values + noise, T=T_OBS, qmin=BAND_QMIN)


@pytest.fixture
def flat_noise(empty_data):
    return FlatNoiseModel(empty_data, levels=[PSD_LEVEL, 2.0 * PSD_LEVEL])


@pytest.fixture
def identity_calibration():
    return CalibrationModel(amplitude=[0.0, 0.0], phase=[0.0, 0.0])


@pytest.fixture
def one_source_model(noisy_data, flat_noise, identity_calibration, codec, params):
    """Model holding the injected source, signal rendered."""
    model = Model(noisy_data, flat_noise, identity_calibration)
    model.add_source(codec.decode(params))
    generate_model_signal(model, noisy_data)
    return model
