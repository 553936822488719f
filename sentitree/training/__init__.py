# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
sentitree training package.

Subsystems:
  - scheduler: per-epoch shuffle and batch partition
  - optimizer: AdaGrad update on the flat parameter vector
  - checkpoint: versioned checkpoint paths and fault-tolerant saves
  - gradcheck: pre-flight finite-difference gradient check
  - evaluation: held-out accuracy
  - metrics: structured batch metrics
  - engine: the time-boxed training loop
"""
