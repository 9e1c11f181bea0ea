import numpy as np
import pytest

from stacknet import (
    CNN,
    FFN,
    Activation,
    Bias,
    Bias2D,
    Conv,
    Linear,
    OneHotLayer,
    Pooling,
    RegressionLayer,
    SGD,
    Softmax,
)
from stacknet.core.init import GaussianInitialization


def _ffn():
    layers = [Linear(3, 4), Bias(4), Activation("tanh"), Linear(4, 2), Softmax()]
    init = GaussianInitialization(std=0.5, seed=1)
    net = FFN(layers, OneHotLayer(loss="cross_entropy"), initialization=init)
    rng = np.random.default_rng(0)
    net.set_batch(rng.normal(size=(5, 3)), np.eye(2)[[0, 1, 1, 0, 1]])
    return net


def _cnn():
    layers = [
        Conv(1, 2, 3),
        Bias2D(2),
        Activation("logistic"),
        Pooling(2, rule="mean"),
        Linear(8, 1),
    ]
    init = GaussianInitialization(std=0.5, seed=2)
    net = CNN(layers, RegressionLayer(loss="mse"), initialization=init)
    rng = np.random.default_rng(1)
    net.set_batch(rng.normal(size=(3, 6, 6)), rng.normal(size=(3, 1)))
    return net


def test_gradient_requires_preceding_evaluate_on_same_example():
    net = _ffn()
    gradient = np.zeros(net.stack.network_size)
    with pytest.raises(RuntimeError):
        net.gradient(net.parameter, 0, gradient)
    net.evaluate(net.parameter, 1)
    with pytest.raises(RuntimeError):
        net.gradient(net.parameter, 0, gradient)
    net.gradient(net.parameter, 1, gradient)
    assert np.any(gradient != 0.0)


@pytest.mark.parametrize("factory", [_ffn, _cnn])
def test_gradient_matches_finite_differences_of_evaluate(factory):
    net = factory()
    base = net.parameter.copy()
    eps = 1e-6
    for i in range(net.num_functions):
        numeric = np.zeros_like(base)
        for k in range(base.size):
            plus, minus = base.copy(), base.copy()
            plus[k] += eps
            minus[k] -= eps
            numeric[k] = (net.evaluate(plus, i) - net.evaluate(minus, i)) / (2 * eps)
        net.evaluate(base, i)
        analytic = np.full_like(base, np.nan)
        net.gradient(base, i, analytic)
        np.testing.assert_allclose(analytic, numeric, atol=1e-5)


def test_evaluate_validates_parameters_and_index():
    net = _ffn()
    with pytest.raises(ValueError):
        net.evaluate(np.zeros(net.stack.network_size + 2), 0)
    with pytest.raises(IndexError):
        net.evaluate(net.parameter, net.num_functions)
    gradient = np.zeros(3)
    net.evaluate(net.parameter, 0)
    with pytest.raises(ValueError):
        net.gradient(net.parameter, 0, gradient)


def test_evaluate_without_batch_raises():
    net = FFN([Linear(2, 1)], RegressionLayer())
    assert net.num_functions == 0
    with pytest.raises(RuntimeError):
        net.evaluate(net.parameter, 0)


def test_foreign_parameter_vector_is_copied_in():
    net = _ffn()
    candidate = net.parameter + 0.25
    net.evaluate(candidate, 0)
    np.testing.assert_array_equal(net.parameter, candidate)
    np.testing.assert_array_equal(net.stack.gather_weights(), candidate)


@pytest.mark.parametrize(
    "options",
    [
        {"max_iterations": 0, "tolerance": 1e9},
        {"max_iterations": 7, "tolerance": 0.0},
    ],
)
def test_optimizing_a_separate_vector_leaves_network_in_sync(options):
    net = _ffn()
    vector = net.parameter.copy()
    objective = SGD(step_size=0.1, shuffle=False, **options).optimize(net, vector)
    np.testing.assert_array_equal(net.parameter, vector)
    np.testing.assert_array_equal(net.stack.gather_weights(), vector)
    expected = sum(net.evaluate(net.parameter, i) for i in range(net.num_functions))
    assert objective == pytest.approx(expected)


def test_failed_evaluate_discards_previous_pass():
    net = _ffn()
    gradient = np.zeros(net.stack.network_size)
    net.evaluate(net.parameter, 0)
    with pytest.raises(IndexError):
        net.evaluate(net.parameter + 0.5, net.num_functions)
    with pytest.raises(RuntimeError):
        net.gradient(net.parameter, 0, gradient)
