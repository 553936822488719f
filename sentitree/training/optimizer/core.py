# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
AdaGrad update for sentitree.

Each parameter keeps the running sum of its squared gradients, and its step
shrinks with the square root of that sum:

    accum[i] += grad[i]^2
    theta[i] -= lr * grad[i] / (sqrt(accum[i]) + eps)

The accumulator starts at 1.0 rather than 0, which damps the very first
step and keeps the denominator away from eps. No momentum, no weight decay;
regularisation is part of the loss.
"""

import torch

ADAGRAD_EPS = 1e-3


def create_accumulator(parameter_count: int) -> torch.Tensor:
    """A fresh sum-of-squared-gradients vector, filled with 1.0."""
    return torch.ones(parameter_count, dtype=torch.float64)


def adagrad_update(
    theta: torch.Tensor,
    grad: torch.Tensor,
    sum_grad_square: torch.Tensor,
    learning_rate: float,
    eps: float = ADAGRAD_EPS,
) -> torch.Tensor:
    """
    Apply one AdaGrad step.

    sum_grad_square is updated in place. theta is not modified; the
    updated parameters are returned as a new tensor. Given the same inputs
    the result is bit-identical, there is no hidden state.

    Args:
        theta: Current flat parameter vector.
        grad: Gradient at theta, same shape.
        sum_grad_square: Running accumulator, same shape, mutated in place.
        learning_rate: Base step size.
        eps: Added to the root of the accumulator.

    Returns:
        The updated parameter vector.

    Raises:
        ValueError: If the three vectors do not share one shape.
    """
    if theta.shape != grad.shape or theta.shape != sum_grad_square.shape:
        raise ValueError(
            "theta, grad and sum_grad_square must have the same shape, got "
            f"{tuple(theta.shape)}, {tuple(grad.shape)}, {tuple(sum_grad_square.shape)}"
        )

    sum_grad_square.add_(grad * grad)
    return theta - learning_rate * grad / (sum_grad_square.sqrt() + eps)
