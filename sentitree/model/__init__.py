# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
sentitree model package.

Recursive networks over binarized sentiment trees:
  - interfaces: what the training engine needs from a model and an evaluator
  - recursive: RNN / RNTN parameters, forward pass, serialization
  - cost: autograd loss and gradient, finite-difference gradient check
"""
