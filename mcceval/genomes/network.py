"""Acyclic feed-forward networks used as CPPNs and navigator controllers.

A network is described by a plain mapping::

    {
        "inputs": 5,
        "outputs": 2,
        "nodes": [{"id": 7, "activation": "sin", "bias": 0.1}],
        "connections": [{"source": 0, "target": 7, "weight": 0.5}],
    }

Input nodes are ``0 .. inputs-1`` and output nodes are
``inputs .. inputs+outputs-1``. Hidden nodes must be listed in ``nodes``;
output nodes may be listed there to override their activation or bias.
Activation is vectorised: ``activate`` takes an ``(n, inputs)`` matrix and
returns ``(n, outputs)``.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Any, Callable, Mapping

import numpy as np

from mcceval.exceptions import DecodeError

__all__ = ["ACTIVATIONS", "FeedForwardNetwork"]


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-4.9 * x))


def _gauss(x: np.ndarray) -> np.ndarray:
    return np.exp(-np.square(2.5 * x))


ACTIVATIONS: dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "tanh": np.tanh,
    "sigmoid": _sigmoid,
    "sin": np.sin,
    "gauss": _gauss,
    "linear": lambda x: x,
    "abs": np.abs,
    "relu": lambda x: np.maximum(x, 0.0),
}

DEFAULT_ACTIVATION = "tanh"


class FeedForwardNetwork:
    """Immutable, topologically ordered network."""

    def __init__(
        self,
        input_count: int,
        output_count: int,
        nodes: Mapping[int, tuple[str, float]],
        connections: list[tuple[int, int, float]],
    ):
        self.input_count = input_count
        self.output_count = output_count
        self._nodes = dict(nodes)
        self._connections = list(connections)
        self._order = self._topological_order()

        incoming: dict[int, list[tuple[int, float]]] = defaultdict(list)
        for source, target, weight in self._connections:
            incoming[target].append((source, weight))
        self._incoming = dict(incoming)

    @property
    def output_ids(self) -> range:
        return range(self.input_count, self.input_count + self.output_count)

    @classmethod
    def from_dict(cls, data: Any) -> "FeedForwardNetwork":
        if not isinstance(data, Mapping):
            raise DecodeError("network description must be a mapping")
        try:
            input_count = int(data["inputs"])
            output_count = int(data["outputs"])
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"network is missing input/output counts: {e}") from e
        if input_count <= 0 or output_count <= 0:
            raise DecodeError(
                f"network needs positive input/output counts, got {input_count}/{output_count}"
            )

        nodes: dict[int, tuple[str, float]] = {
            nid: (DEFAULT_ACTIVATION, 0.0)
            for nid in range(input_count, input_count + output_count)
        }
        for raw in data.get("nodes", []):
            try:
                nid = int(raw["id"])
                activation = str(raw.get("activation", DEFAULT_ACTIVATION))
                bias = float(raw.get("bias", 0.0))
            except (KeyError, TypeError, ValueError) as e:
                raise DecodeError(f"malformed node {raw!r}: {e}") from e
            if nid < input_count:
                raise DecodeError(f"node {nid} collides with an input node")
            if activation not in ACTIVATIONS:
                raise DecodeError(f"unknown activation function '{activation}'")
            nodes[nid] = (activation, bias)

        connections: list[tuple[int, int, float]] = []
        for raw in data.get("connections", []):
            try:
                source = int(raw["source"])
                target = int(raw["target"])
                weight = float(raw["weight"])
            except (KeyError, TypeError, ValueError) as e:
                raise DecodeError(f"malformed connection {raw!r}: {e}") from e
            if source >= input_count and source not in nodes:
                raise DecodeError(f"connection source {source} is not a known node")
            if target not in nodes:
                raise DecodeError(f"connection target {target} is not a known node")
            connections.append((source, target, weight))

        return cls(input_count, output_count, nodes, connections)

    def to_dict(self) -> dict[str, Any]:
        return {
            "inputs": self.input_count,
            "outputs": self.output_count,
            "nodes": [
                {"id": nid, "activation": act, "bias": bias}
                for nid, (act, bias) in sorted(self._nodes.items())
            ],
            "connections": [
                {"source": s, "target": t, "weight": w} for s, t, w in self._connections
            ],
        }

    def _topological_order(self) -> list[int]:
        indegree = {nid: 0 for nid in self._nodes}
        children: dict[int, list[int]] = defaultdict(list)
        for source, target, _ in self._connections:
            if source in self._nodes:
                indegree[target] += 1
                children[source].append(target)

        ready = deque(sorted(nid for nid, deg in indegree.items() if deg == 0))
        order: list[int] = []
        while ready:
            nid = ready.popleft()
            order.append(nid)
            for child in children[nid]:
                indegree[child] -= 1
                if indegree[child] == 0:
                    ready.append(child)

        if len(order) != len(self._nodes):
            raise DecodeError("network contains a recurrent cycle")
        return order

    def activate(self, inputs: np.ndarray) -> np.ndarray:
        inputs = np.atleast_2d(np.asarray(inputs, dtype=np.float64))
        if inputs.shape[1] != self.input_count:
            raise ValueError(
                f"expected {self.input_count} inputs per row, got {inputs.shape[1]}"
            )

        rows = inputs.shape[0]
        values: dict[int, np.ndarray] = {i: inputs[:, i] for i in range(self.input_count)}
        for nid in self._order:
            activation, bias = self._nodes[nid]
            total = np.full(rows, bias, dtype=np.float64)
            for source, weight in self._incoming.get(nid, ()):
                total += weight * values[source]
            values[nid] = ACTIVATIONS[activation](total)

        return np.column_stack([values[nid] for nid in self.output_ids])
