import numpy as np
import pytest

from stacknet import (
    CNN,
    FFN,
    SGD,
    Bias,
    Linear,
    OneHotLayer,
    RegressionLayer,
    RMSProp,
    Softmax,
)
from stacknet.core.init import ZeroInitialization
from stacknet.core.network import NetworkState


class _Capture:
    def __init__(self):
        self.objectives = []

    def on_epoch(self, epoch, metrics):
        self.objectives.append(metrics["objective"])


def _half_images():
    left = np.zeros((4, 4))
    left[:, :2] = 1.0
    right = np.zeros((4, 4))
    right[:, 2:] = 1.0
    return np.stack([left, right]), np.eye(2)


def _image_net():
    return CNN(
        [Linear(16, 2), Softmax()],
        OneHotLayer(loss="cross_entropy"),
        initialization=ZeroInitialization(),
    )


def test_two_image_classifier_converges():
    images, targets = _half_images()
    net = _image_net()
    capture = _Capture()
    optimizer = SGD(step_size=0.1, max_iterations=100, tolerance=0.0, seed=3, callbacks=[capture])
    objective = net.train(images, targets, optimizer)

    assert len(capture.objectives) == 50
    assert all(b <= a + 1e-12 for a, b in zip(capture.objectives, capture.objectives[1:]))
    assert capture.objectives[-1] < 0.1 * capture.objectives[0]
    assert objective < capture.objectives[-1]
    np.testing.assert_array_equal(net.predict(images), targets)
    assert net.state is NetworkState.TRAINED


def test_retraining_resumes_from_current_parameters():
    images, targets = _half_images()
    net = _image_net()
    first, second = _Capture(), _Capture()
    options = {"step_size": 0.1, "max_iterations": 20, "tolerance": 0.0}
    net.train(images, targets, SGD(callbacks=[first], **options))
    net.train(optimizer=SGD(callbacks=[second], **options))
    assert second.objectives[0] < first.objectives[-1]


def test_zero_step_returns_objective_of_current_parameters():
    images, targets = _half_images()
    net = _image_net()
    net.train(images, targets, SGD(step_size=0.1, max_iterations=10))
    before = net.parameter.copy()
    objective = net.train(optimizer=SGD(step_size=0.0))
    np.testing.assert_array_equal(net.parameter, before)
    expected = sum(net.evaluate(net.parameter, i) for i in range(net.num_functions))
    assert objective == pytest.approx(expected)


def test_linear_regression_fits_noise_free_data():
    rng = np.random.default_rng(0)
    inputs = rng.uniform(-1.0, 1.0, size=(20, 2))
    responses = inputs @ np.array([2.0, -1.0]) + 0.5
    net = FFN([Linear(2, 1), Bias(1)], RegressionLayer(loss="mse"), seed=4)
    capture = _Capture()
    net.train(
        inputs,
        responses,
        SGD(step_size=0.05, max_iterations=2000, tolerance=1e-12, callbacks=[capture]),
    )
    assert capture.objectives[-1] < 1e-2 * capture.objectives[0]
    np.testing.assert_allclose(net.parameter, [2.0, -1.0, 0.5], atol=1e-2)
    assert net.predict(inputs).shape == (20, 1)


def test_rmsprop_reduces_classification_objective():
    rng = np.random.default_rng(1)
    inputs = np.vstack([rng.normal(-1.5, 0.3, size=(10, 2)), rng.normal(1.5, 0.3, size=(10, 2))])
    targets = np.eye(2)[[0] * 10 + [1] * 10]
    net = FFN([Linear(2, 2), Bias(2), Softmax()], OneHotLayer(loss="cross_entropy"), seed=2)
    capture = _Capture()
    net.train(inputs, targets, RMSProp(step_size=0.01, max_iterations=400, callbacks=[capture]))
    assert capture.objectives[-1] < capture.objectives[0]
    assert np.mean(np.all(net.predict(inputs) == targets, axis=1)) >= 0.9


def test_constructor_trains_when_given_data():
    images, targets = _half_images()
    net = CNN(
        [Linear(16, 2), Softmax()],
        OneHotLayer(loss="cross_entropy"),
        predictors=images,
        responses=targets,
        optimizer=SGD(step_size=0.1, max_iterations=40),
    )
    assert net.state is NetworkState.TRAINED
    assert net.num_functions == 2


def test_training_input_contracts():
    images, targets = _half_images()
    net = _image_net()
    with pytest.raises(RuntimeError):
        net.train()
    with pytest.raises(ValueError):
        net.train(images, targets[:1])
    with pytest.raises(ValueError):
        net.train(images)
    with pytest.raises(ValueError):
        net.train(images.reshape(2, 16), targets)
    ffn = FFN([Linear(16, 2)], RegressionLayer())
    with pytest.raises(ValueError):
        ffn.train(images, targets)
    with pytest.raises(ValueError):
        ffn.train(np.zeros((0, 16)), np.zeros((0, 2)))
