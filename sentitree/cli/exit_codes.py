# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI exit codes. These are the only codes `sentitree` exits with.

USER_ERROR covers bad command lines, including unknown arguments.
VALIDATION_ERROR means the gradient check found a mismatch.
"""

SUCCESS: int = 0
USER_ERROR: int = 1
CONFIG_ERROR: int = 2
RUNTIME_ERROR: int = 3
VALIDATION_ERROR: int = 4
