import numpy as np
import pytest

from stacknet.core.layers import Activation, Bias, Linear, Softmax
from stacknet.core.stack import LayerStack


def _stack():
    return LayerStack([Linear(3, 4), Bias(4), Activation("tanh"), Linear(4, 2)])


def test_network_size_is_sum_of_layer_sizes():
    stack = _stack()
    assert stack.network_size == 12 + 4 + 0 + 8
    assert len(stack) == 4


def test_weightless_layers_get_empty_ranges_without_shifting_offsets():
    stack = _stack()
    assert stack.offsets == ((0, 12), (12, 4), (16, 0), (16, 8))


def test_weights_are_views_into_the_parameter_vector():
    stack = _stack()
    parameter = np.arange(stack.network_size, dtype=np.float64)
    stack.network_weights(parameter)
    np.testing.assert_array_equal(stack.gather_weights(), parameter)
    np.testing.assert_array_equal(stack[0].weights, parameter[:12].reshape(4, 3))
    parameter[12] = -7.0
    assert stack[1].weights[0] == -7.0


def test_parameter_vector_is_validated():
    stack = _stack()
    with pytest.raises(ValueError):
        stack.network_weights(np.zeros(stack.network_size + 1))
    with pytest.raises(ValueError):
        stack.network_weights(np.zeros((1, stack.network_size)))
    with pytest.raises(ValueError):
        stack.network_weights(np.zeros(2 * stack.network_size)[::2])
    with pytest.raises(ValueError):
        stack.network_gradients(np.zeros(3))


def test_construction_errors():
    with pytest.raises(ValueError):
        LayerStack([])
    with pytest.raises(TypeError):
        LayerStack([Linear(2, 2), "softmax"])
    with pytest.raises(TypeError):
        LayerStack([Linear(2, 2), Softmax()], signature=[Linear, Bias])
    stack = LayerStack([Linear(2, 2), Softmax()], signature=[Linear, Softmax])
    assert stack.network_size == 4


def test_backward_matches_closed_form_for_two_linear_layers():
    first, second = Linear(3, 2), Linear(2, 1)
    stack = LayerStack([first, second])
    rng = np.random.default_rng(0)
    parameter = rng.normal(size=stack.network_size)
    stack.network_weights(parameter)
    w1 = parameter[:6].reshape(2, 3)
    w2 = parameter[6:].reshape(1, 2)
    x = np.array([1.0, -2.0, 0.5])
    error = np.array([0.3])

    ctx = stack.new_context(True, rng)
    out = stack.forward(x, ctx)
    np.testing.assert_allclose(out, w2 @ (w1 @ x))
    np.testing.assert_allclose(stack.output_parameter(ctx), out)
    delta = stack.backward(error, ctx)
    np.testing.assert_allclose(delta, w1.T @ (w2.T @ error))

    gradient = np.full(stack.network_size, np.nan)
    stack.network_gradients(gradient)
    stack.update_gradients(ctx, gradient)
    np.testing.assert_allclose(gradient[:6], np.outer(w2.T @ error, x).ravel())
    np.testing.assert_allclose(gradient[6:], np.outer(error, w1 @ x).ravel())


def test_backward_requires_forward():
    stack = _stack()
    stack.network_weights(np.zeros(stack.network_size))
    ctx = stack.new_context(True, np.random.default_rng(0))
    with pytest.raises(RuntimeError):
        stack.backward(np.ones(2), ctx)
    with pytest.raises(RuntimeError):
        stack.output_parameter(ctx)


def test_copy_and_describe():
    stack = _stack()
    parameter = np.ones(stack.network_size)
    stack.network_weights(parameter)
    clone = stack.copy()
    parameter[:] = 2.0
    assert np.all(clone.gather_weights() == 1.0)
    described = stack.describe()
    assert [entry["kind"] for entry in described] == ["linear", "bias", "activation", "linear"]
    assert described[3]["offset"] == 16
    assert "Linear(in_size=3, out_size=4)" in repr(stack)
