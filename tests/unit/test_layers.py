import numpy as np
import pytest

from stacknet.core.layers import (
    Activation,
    Bias,
    Bias2D,
    Conv,
    Dropout,
    Linear,
    Pooling,
    Softmax,
    build_layer,
)
from stacknet.core.types import LayerScratch, PassContext

EPS = 1e-6


def _bound(layer, seed=0):
    weights = np.random.default_rng(seed).normal(size=layer.weight_size)
    layer.bind(weights)
    return weights


def _forward(layer, x, deterministic=True):
    ctx = PassContext(deterministic=deterministic, rng=np.random.default_rng(0))
    scratch = LayerScratch(input=x)
    y = layer.forward(x, scratch, ctx)
    scratch.output = y
    return y, scratch, ctx


def _check_input_gradient(layer, x, seed=1):
    y, scratch, ctx = _forward(layer, x)
    upstream = np.random.default_rng(seed).normal(size=y.shape)
    analytic = layer.backward(upstream, scratch, ctx)
    assert analytic.shape == x.shape
    numeric = np.zeros_like(x)
    for idx in np.ndindex(x.shape):
        plus, minus = x.copy(), x.copy()
        plus[idx] += EPS
        minus[idx] -= EPS
        f_plus = np.sum(upstream * _forward(layer, plus)[0])
        f_minus = np.sum(upstream * _forward(layer, minus)[0])
        numeric[idx] = (f_plus - f_minus) / (2 * EPS)
    np.testing.assert_allclose(analytic, numeric, atol=1e-6)


def _check_weight_gradient(layer, x, weights, seed=2):
    y, scratch, ctx = _forward(layer, x)
    upstream = np.random.default_rng(seed).normal(size=y.shape)
    scratch.error = upstream
    analytic = np.ravel(layer.gradient(scratch))
    numeric = np.zeros_like(weights)
    for k in range(weights.size):
        original = weights[k]
        weights[k] = original + EPS
        f_plus = np.sum(upstream * _forward(layer, x)[0])
        weights[k] = original - EPS
        f_minus = np.sum(upstream * _forward(layer, x)[0])
        weights[k] = original
        numeric[k] = (f_plus - f_minus) / (2 * EPS)
    np.testing.assert_allclose(analytic, numeric, atol=1e-6)


def test_linear_flattens_volumes_and_restores_shape():
    layer = Linear(6, 4)
    _bound(layer)
    x = np.random.default_rng(3).normal(size=(2, 3))
    y, scratch, ctx = _forward(layer, x)
    assert y.shape == (4,)
    assert layer.backward(np.ones(4), scratch, ctx).shape == (2, 3)


def test_linear_gradients_match_finite_differences():
    layer = Linear(3, 2)
    weights = _bound(layer)
    x = np.array([0.5, -1.0, 2.0])
    _check_input_gradient(layer, x)
    _check_weight_gradient(layer, x, weights)


def test_bias_gradients_scale_with_bias_constant():
    layer = Bias(3, bias=0.5)
    weights = _bound(layer)
    x = np.array([1.0, 2.0, 3.0])
    y, _, _ = _forward(layer, x)
    np.testing.assert_allclose(y, x + 0.5 * weights)
    _check_weight_gradient(layer, x, weights)


def test_bias2d_adds_one_offset_per_map():
    layer = Bias2D(2)
    weights = np.array([1.0, -1.0])
    layer.bind(weights)
    x = np.zeros((2, 3, 3))
    y, _, _ = _forward(layer, x)
    assert np.all(y[0] == 1.0) and np.all(y[1] == -1.0)
    _check_weight_gradient(layer, np.random.default_rng(4).normal(size=(2, 3, 3)), weights)


@pytest.mark.parametrize("stride,padding", [(1, 0), (1, 1), (2, 0)])
def test_conv_gradients_match_finite_differences(stride, padding):
    layer = Conv(2, 3, 3, stride=stride, padding=padding)
    weights = _bound(layer)
    x = np.random.default_rng(5).normal(size=(2, 5, 5))
    _check_input_gradient(layer, x)
    _check_weight_gradient(layer, x, weights)


def test_conv_output_shape_and_single_map_input():
    layer = Conv(1, 2, 3)
    _bound(layer)
    y, _, _ = _forward(layer, np.ones((6, 6)))
    assert y.shape == (2, 4, 4)
    with pytest.raises(ValueError):
        _forward(layer, np.ones((2, 6, 6)))
    with pytest.raises(ValueError):
        _forward(layer, np.ones((2, 2)))


def test_conv_matches_direct_cross_correlation():
    layer = Conv(1, 1, 2)
    layer.bind(np.array([1.0, 2.0, 3.0, 4.0]))
    x = np.arange(9, dtype=np.float64).reshape(3, 3)
    y, _, _ = _forward(layer, x)
    expected = np.array(
        [
            [0 * 1 + 1 * 2 + 3 * 3 + 4 * 4, 1 * 1 + 2 * 2 + 4 * 3 + 5 * 4],
            [3 * 1 + 4 * 2 + 6 * 3 + 7 * 4, 4 * 1 + 5 * 2 + 7 * 3 + 8 * 4],
        ],
        dtype=np.float64,
    )
    np.testing.assert_allclose(y[0], expected)


@pytest.mark.parametrize("rule", ["mean", "max"])
def test_pooling_gradients_match_finite_differences(rule):
    layer = Pooling(2, rule=rule)
    x = np.random.default_rng(6).normal(size=(2, 5, 5))
    y, _, _ = _forward(layer, x)
    assert y.shape == (2, 2, 2)
    _check_input_gradient(layer, x)


def test_max_pooling_selects_window_maximum():
    layer = Pooling(2, rule="max")
    x = np.array([[1.0, 5.0], [3.0, 2.0]])
    y, _, _ = _forward(layer, x)
    assert y.shape == (1, 1, 1)
    assert y[0, 0, 0] == 5.0


@pytest.mark.parametrize("function", ["logistic", "tanh", "identity"])
def test_activation_gradients_match_finite_differences(function):
    layer = Activation(function)
    assert layer.weight_size == 0
    _check_input_gradient(layer, np.array([-1.5, -0.2, 0.3, 2.0]))


def test_softmax_outputs_distribution_and_jacobian_backward():
    layer = Softmax()
    x = np.array([1.0, 2.0, 0.5])
    y, _, _ = _forward(layer, x)
    assert y.sum() == pytest.approx(1.0)
    _check_input_gradient(layer, x)


def test_dropout_is_identity_in_deterministic_mode():
    layer = Dropout(0.5)
    x = np.arange(1.0, 7.0)
    y, _, _ = _forward(layer, x, deterministic=True)
    np.testing.assert_array_equal(y, x)


def test_dropout_zeroes_activations_while_training():
    layer = Dropout(0.5)
    x = np.ones(1000)
    y, scratch, ctx = _forward(layer, x, deterministic=False)
    dropped = np.mean(y == 0.0)
    assert 0.4 < dropped < 0.6
    assert set(np.unique(y)) <= {0.0, 2.0}
    np.testing.assert_array_equal(layer.backward(np.ones(1000), scratch, ctx), y)
    with pytest.raises(ValueError):
        Dropout(1.0)


def test_bind_rejects_wrong_size():
    with pytest.raises(ValueError):
        Linear(2, 2).bind(np.zeros(3))


def test_build_layer_from_config():
    layer = build_layer({"kind": "conv", "in_maps": 1, "out_maps": 4, "kernel_rows": 3})
    assert isinstance(layer, Conv)
    assert layer.weight_shape == (4, 1, 3, 3)
    assert build_layer(layer.describe()).config() == layer.config()
    with pytest.raises(KeyError):
        build_layer({"kind": "lstm"})
    with pytest.raises(ValueError):
        Pooling(2, rule="median")
