# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Recursive sentiment model.

Every internal node of a binarized tree gets a vector computed from its
children, and every internal node is classified from its own vector:

    preterminal:  h = tanh(L[word])
    binary:       h = tanh(W [a; b; 1] + [a; b]^T T [a; b])   (T only for RNTN)
    unary chain:  h = h(child)
    classes:      softmax(Ws [h; 1])

Parameters live in an ordered dict of float64 tensors. The order is fixed
(word_vectors, transform, [transform_tensor], classification) because the
flat vector the trainer sees is their concatenation in that order.

Forward functions take the parameter dict explicitly. The evaluator passes
views into a vector that requires grad; prediction passes the model's own
tensors.
"""

import gzip
import io
import logging
import math
from pathlib import Path
from typing import Iterable, Mapping, Optional

import torch

from sentitree.config.schema import ModelConfig
from sentitree.logging.logger import get_logger
from sentitree.model.interfaces import TrainableModel
from sentitree.trees.gold import LabeledTree
from sentitree.trees.tree import Tree, TreeFormatError
from sentitree.utils.filesystem import atomic_write_bytes

logger: logging.Logger = get_logger(__name__)

DTYPE = torch.float64
FORMAT_VERSION = 1
_GZIP_MAGIC = b"\x1f\x8b"


def build_vocabulary(trees: Iterable[LabeledTree], config: ModelConfig) -> list[str]:
    """Sorted distinct words of the training trees, with the unknown word first."""
    words: set[str] = set()
    for example in trees:
        for word in example.tree.words():
            words.add(word.lower() if config.lowercase_words else word)
    words.discard(config.unk_word)
    return [config.unk_word, *sorted(words)]


class RecursiveSentimentModel(TrainableModel):
    """
    RNN / RNTN over binarized sentiment trees.

    Args:
        config: Architecture settings.
        vocabulary: Known words; index 0 is the unknown word.
        params: Existing parameters (used when loading). When omitted the
            parameters are initialised from `seed`.
        seed: Seed for parameter initialisation.
    """

    def __init__(
        self,
        config: ModelConfig,
        vocabulary: list[str],
        params: Optional[Mapping[str, torch.Tensor]] = None,
        seed: int = 42,
    ) -> None:
        if not vocabulary:
            raise ValueError("Vocabulary must contain at least the unknown word")
        self.config = config
        self.vocabulary = list(vocabulary)
        self._word_index = {word: i for i, word in enumerate(self.vocabulary)}
        self._shapes = self._parameter_shapes()

        if params is None:
            self._params = self._initial_parameters(seed)
        else:
            self._params = {}
            for name, shape in self._shapes.items():
                tensor = params[name].to(DTYPE)
                if tuple(tensor.shape) != shape:
                    raise ValueError(
                        f"Parameter {name} has shape {tuple(tensor.shape)}, expected {shape}"
                    )
                self._params[name] = tensor.clone()

    @classmethod
    def from_trees(
        cls,
        config: ModelConfig,
        trees: Iterable[LabeledTree],
        seed: int = 42,
    ) -> "RecursiveSentimentModel":
        """Build an untrained model whose vocabulary covers the training trees."""
        vocabulary = build_vocabulary(trees, config)
        model = cls(config, vocabulary, seed=seed)
        logger.info(
            "Model created",
            extra={
                "vocabulary": len(vocabulary),
                "parameters": model.parameter_count(),
                "num_hid": config.num_hid,
                "rntn": not config.simplified_model,
            },
        )
        return model

    # ── parameter layout ──

    def _parameter_shapes(self) -> dict[str, tuple[int, ...]]:
        hid = self.config.num_hid
        shapes: dict[str, tuple[int, ...]] = {
            "word_vectors": (len(self.vocabulary), hid),
            "transform": (hid, 2 * hid + 1),
        }
        if not self.config.simplified_model:
            shapes["transform_tensor"] = (2 * hid, 2 * hid, hid)
        shapes["classification"] = (self.config.num_classes, hid + 1)
        return shapes

    def _initial_parameters(self, seed: int) -> dict[str, torch.Tensor]:
        generator = torch.Generator().manual_seed(seed)
        hid = self.config.num_hid
        scale = self.config.scaling_for_init

        def uniform(shape: tuple[int, ...], bound: float) -> torch.Tensor:
            return (torch.rand(shape, generator=generator, dtype=DTYPE) * 2.0 - 1.0) * bound

        params: dict[str, torch.Tensor] = {}
        params["word_vectors"] = torch.randn(
            self._shapes["word_vectors"], generator=generator, dtype=DTYPE
        )
        transform = uniform(self._shapes["transform"], scale / math.sqrt(2 * hid))
        transform[:, -1] = 0.0
        params["transform"] = transform
        if "transform_tensor" in self._shapes:
            params["transform_tensor"] = uniform(
                self._shapes["transform_tensor"], scale / (4.0 * hid)
            )
        classification = uniform(self._shapes["classification"], 1.0 / math.sqrt(hid))
        classification[:, -1] = 0.0
        params["classification"] = classification
        return params

    def parameter_names(self) -> list[str]:
        return list(self._shapes)

    def parameter_count(self) -> int:
        return sum(math.prod(shape) for shape in self._shapes.values())

    def split(self, theta: torch.Tensor) -> dict[str, torch.Tensor]:
        """
        View a flat vector as named parameter tensors.

        The returned tensors are views, so gradients flow back into theta.
        """
        if theta.dim() != 1 or theta.numel() != self.parameter_count():
            raise ValueError(
                f"Expected a flat vector of {self.parameter_count()} parameters, "
                f"got shape {tuple(theta.shape)}"
            )
        params: dict[str, torch.Tensor] = {}
        offset = 0
        for name, shape in self._shapes.items():
            size = math.prod(shape)
            params[name] = theta[offset : offset + size].view(shape)
            offset += size
        return params

    def flatten(self) -> torch.Tensor:
        return torch.cat([self._params[name].reshape(-1) for name in self._shapes])

    def unflatten(self, theta: torch.Tensor) -> None:
        views = self.split(theta.detach().to(DTYPE))
        self._params = {name: view.clone() for name, view in views.items()}

    def check_tree(self, example: LabeledTree) -> None:
        """
        Reject a tree the forward pass or the loss cannot handle.

        Raises:
            TreeFormatError: If the tree is a bare word, a node has more than
                two children, a binary node has a bare word child, or a gold
                class is outside [0, num_classes).
        """
        if example.tree.is_leaf():
            raise TreeFormatError(f"Tree {example.tree.label!r} is a bare word")
        num_classes = self.config.num_classes
        for node in example.tree.internal_nodes():
            if len(node.children) > 2:
                raise TreeFormatError(
                    f"Node {node.label!r} has {len(node.children)} children; trees must be binarized"
                )
            if len(node.children) == 2 and any(child.is_leaf() for child in node.children):
                raise TreeFormatError(f"Binary node {node.label!r} has a bare word child")
            gold = example.gold_class(node)
            if not 0 <= gold < num_classes:
                raise TreeFormatError(
                    f"Gold class {gold} outside [0, {num_classes}) at node {node.label!r}"
                )

    # ── forward ──

    def word_index(self, word: str) -> int:
        if self.config.lowercase_words:
            word = word.lower()
        return self._word_index.get(word, 0)

    def node_vectors(
        self,
        tree: Tree,
        params: Optional[Mapping[str, torch.Tensor]] = None,
    ) -> dict[Tree, torch.Tensor]:
        """
        Vector of every internal node of `tree`, computed bottom-up.

        Raises:
            TreeFormatError: If a node has more than two children, or a
                binary node has a leaf child (the tree is not binarized).
        """
        params = self._params if params is None else params
        vectors: dict[Tree, torch.Tensor] = {}
        self._forward(tree, params, vectors)
        return vectors

    def _forward(
        self,
        node: Tree,
        params: Mapping[str, torch.Tensor],
        vectors: dict[Tree, torch.Tensor],
    ) -> torch.Tensor:
        if node.is_preterminal():
            word_vector = params["word_vectors"][self.word_index(node.children[0].label)]
            vector = torch.tanh(word_vector)
        elif len(node.children) == 1:
            vector = self._forward(node.children[0], params, vectors)
        elif len(node.children) == 2:
            left, right = node.children
            if left.is_leaf() or right.is_leaf():
                raise TreeFormatError(f"Binary node {node.label!r} has a bare word child")
            children = torch.cat(
                [self._forward(left, params, vectors), self._forward(right, params, vectors)]
            )
            bias_input = torch.cat([children, children.new_ones(1)])
            pre_activation = params["transform"] @ bias_input
            if "transform_tensor" in params:
                pre_activation = pre_activation + torch.einsum(
                    "i,ijk,j->k", children, params["transform_tensor"], children
                )
            vector = torch.tanh(pre_activation)
        else:
            raise TreeFormatError(
                f"Node {node.label!r} has {len(node.children)} children; trees must be binarized"
            )
        vectors[node] = vector
        return vector

    def class_log_probabilities(
        self,
        vector: torch.Tensor,
        params: Optional[Mapping[str, torch.Tensor]] = None,
    ) -> torch.Tensor:
        params = self._params if params is None else params
        scores = params["classification"] @ torch.cat([vector, vector.new_ones(1)])
        return torch.log_softmax(scores, dim=0)

    def predict(self, tree: Tree) -> dict[Tree, int]:
        """Most likely class of every internal node under the current parameters."""
        with torch.no_grad():
            vectors = self.node_vectors(tree)
            return {
                node: int(torch.argmax(self.class_log_probabilities(vector)).item())
                for node, vector in vectors.items()
            }

    # ── persistence ──

    def serialize(self, path: Path) -> None:
        """
        Write config, vocabulary and parameters as a torch payload.

        Paths ending in .gz are gzip-compressed. The write is atomic.
        """
        payload = {
            "format_version": FORMAT_VERSION,
            "config": self.config.model_dump(),
            "vocabulary": self.vocabulary,
            "params": {name: tensor.clone() for name, tensor in self._params.items()},
        }
        buffer = io.BytesIO()
        torch.save(payload, buffer)
        data = buffer.getvalue()
        if path.name.endswith(".gz"):
            data = gzip.compress(data)
        atomic_write_bytes(path, data)
        logger.info("Model serialized", extra={"path": str(path), "bytes": len(data)})


def load_model(path: Path) -> RecursiveSentimentModel:
    """
    Read a model written by RecursiveSentimentModel.serialize.

    Raises:
        FileNotFoundError: If path does not exist.
        ValueError: If the payload has an unknown format version.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Model file not found: {path}")
    data = path.read_bytes()
    if data[:2] == _GZIP_MAGIC:
        data = gzip.decompress(data)
    payload = torch.load(io.BytesIO(data), map_location="cpu", weights_only=True)

    if payload.get("format_version") != FORMAT_VERSION:
        raise ValueError(f"Unsupported model format version: {payload.get('format_version')}")

    config = ModelConfig.model_validate(payload["config"])
    return RecursiveSentimentModel(config, payload["vocabulary"], params=payload["params"])
