"""Entity sets: the read-only input collections of one recomputation.

Records arrive as dicts using the wire field names of the devtools DTOs. Both the
canonical names (``watchedSignalName``, ``inputSignalName`` ...) and the
DTO names (``collateralName``, ``inputCollateralName`` ...) are accepted.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from typing import Any

from signal_topology.types import CausalEvent, ListenerBinding, NodeRecord, SignalOwnership

logger = logging.getLogger(__name__)

COLLATERAL_MARKER = ":collateral:"


def canonical_signal_name(name: str | None) -> str | None:
    """Strip a ``<...>:collateral:`` namespace prefix; ``None``/empty stays ``None``."""
    if not name:
        return None
    idx = name.rfind(COLLATERAL_MARKER)
    if idx == -1:
        return name
    return name[idx + len(COLLATERAL_MARKER) :] or None


def _first(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


def _str_or_none(value: Any) -> str | None:
    return None if value is None else str(value)


# ─── Record Parsing ───────────────────────────────────────────────────────────


def parse_node(record: Mapping[str, Any]) -> NodeRecord | None:
    node_id = _first(record, "id", "neuronId")
    if node_id is None:
        logger.warning("Skipping node record without id: %r", record)
        return None
    name = _first(record, "name") or node_id
    return NodeRecord(id=str(node_id), name=str(name), app_id=str(_first(record, "appId") or ""))


def parse_binding(record: Mapping[str, Any]) -> ListenerBinding | None:
    owner = _first(record, "neuronId", "ownerNeuronId")
    signal = _first(record, "watchedSignalName", "collateralName", "name")
    if owner is None or signal is None:
        logger.warning("Skipping listener binding without neuron or signal: %r", record)
        return None
    return ListenerBinding(
        owner_neuron_id=str(owner),
        watched_signal_name=str(signal),
        id=str(_first(record, "id") or ""),
        app_id=str(_first(record, "appId") or ""),
    )


def parse_ownership(record: Mapping[str, Any]) -> SignalOwnership | None:
    signal = _first(record, "name", "collateralName", "signalName")
    if signal is None:
        logger.warning("Skipping signal ownership without a name: %r", record)
        return None
    # An empty owner is kept: the builder reports it as an invalid ownership.
    owner = record.get("neuronId", record.get("ownerNeuronId")) or ""
    return SignalOwnership(signal_name=str(signal), owner_neuron_id=str(owner), app_id=str(_first(record, "appId") or ""))


def parse_event(record: Mapping[str, Any]) -> CausalEvent | None:
    event_id = _first(record, "id", "responseId")
    if event_id is None:
        logger.warning("Skipping causal event without id: %r", record)
        return None
    return CausalEvent(
        id=str(event_id),
        producing_neuron_id=str(_first(record, "producingNeuronId", "neuronId") or ""),
        input_signal_name=_str_or_none(_first(record, "inputSignalName", "inputCollateralName")),
        output_signal_name=_str_or_none(_first(record, "outputSignalName", "outputCollateralName")),
        app_id=str(_first(record, "appId") or ""),
    )


def _parse_all(records: Iterable[Mapping[str, Any] | None], parser: Any) -> list[Any]:
    parsed = []
    for record in records:
        if record is None:
            continue
        item = parser(record)
        if item is not None:
            parsed.append(item)
    return parsed


# ─── Entity Set ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EntitySet:
    """Snapshot of the four input collections for one recomputation."""

    nodes: tuple[NodeRecord, ...] = ()
    bindings: tuple[ListenerBinding, ...] = ()
    ownerships: tuple[SignalOwnership, ...] = ()
    events: tuple[CausalEvent, ...] = ()

    @classmethod
    def from_records(
        cls,
        neurons: Iterable[Mapping[str, Any] | None] = (),
        dendrites: Iterable[Mapping[str, Any] | None] = (),
        collaterals: Iterable[Mapping[str, Any] | None] = (),
        responses: Iterable[Mapping[str, Any] | None] = (),
    ) -> EntitySet:
        return cls(
            nodes=tuple(_parse_all(neurons, parse_node)),
            bindings=tuple(_parse_all(dendrites, parse_binding)),
            ownerships=tuple(_parse_all(collaterals, parse_ownership)),
            events=tuple(_parse_all(responses, parse_event)),
        )

    def for_app(self, app_id: str) -> EntitySet:
        """Restrict every collection to records of ``app_id``."""
        return EntitySet(
            nodes=tuple(r for r in self.nodes if r.app_id == app_id),
            bindings=tuple(r for r in self.bindings if r.app_id == app_id),
            ownerships=tuple(r for r in self.ownerships if r.app_id == app_id),
            events=tuple(r for r in self.events if r.app_id == app_id),
        )

    @property
    def app_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for collection in (self.nodes, self.bindings, self.ownerships, self.events):
            for record in collection:
                seen.setdefault(record.app_id, None)
        return list(seen)

    def fingerprint(self) -> str:
        """SHA-256 over a canonical JSON dump; equal content gives equal fingerprints."""
        payload = {
            "nodes": [asdict(r) for r in self.nodes],
            "bindings": [asdict(r) for r in self.bindings],
            "ownerships": [asdict(r) for r in self.ownerships],
            "events": [asdict(r) for r in self.events],
        }
        blob = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(blob.encode("utf-8")).hexdigest()
