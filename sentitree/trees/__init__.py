# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
sentitree tree package.

  - tree: immutable labeled trees
  - gold: gold class attachment
  - reader: bracketed treebank reader
"""
