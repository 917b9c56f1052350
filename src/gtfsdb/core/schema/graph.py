# src/gtfsdb/core/schema/graph.py
"""SchemaGraph: the immutable entity/foreign-key model plus graph queries.

Two networkx graphs are built at construction and frozen:

- the reference graph (MultiDiGraph), one edge per foreign key alternative,
  pointing from the referencing entity to the referenced entity, keyed by
  the source column. Self-references appear as self-loops.
- the propagation graph (DiGraph), pointing from an entity to every entity
  whose rows can become orphaned when rows of the first are deleted:
  target -> source for every alternative (dangling), and source -> target
  for prune-unreferenced edges (unreferenced). Self-references are left out;
  the pruner handles them with a transitive rescue instead.
"""

from __future__ import annotations

import difflib
from collections.abc import Iterable
from types import MappingProxyType

import networkx as nx
from networkx import DiGraph, MultiDiGraph

from gtfsdb.contracts.enums import EdgeKind
from gtfsdb.contracts.errors import SchemaConfigurationError
from gtfsdb.contracts.types import EntityName
from gtfsdb.core.schema.models import ColumnRef, EntitySchema, ForeignKeyEdge


def _suggest_similar(name: str, candidates: Iterable[str]) -> list[str]:
    """Suggest similar names for resolution errors."""
    return difflib.get_close_matches(name, list(candidates), n=3, cutoff=0.6)


class SchemaGraph:
    """Entities and foreign-key edges of a relational feed schema.

    Constructed once and never mutated. Safe to share between threads and
    between validator and pruner instances.

    Raises:
        SchemaConfigurationError: On construction, if an entity is declared
            twice, an edge refers to an undeclared entity or column, or a
            column carries more than one foreign key
    """

    def __init__(self, entities: Iterable[EntitySchema], edges: Iterable[ForeignKeyEdge] = ()) -> None:
        entity_map: dict[EntityName, EntitySchema] = {}
        for declared in entities:
            if declared.name in entity_map:
                raise SchemaConfigurationError(f"Entity '{declared.name}' declared twice")
            entity_map[declared.name] = declared
        self._entities = MappingProxyType(dict(sorted(entity_map.items())))

        edge_list = list(edges)
        seen_sources: set[ColumnRef] = set()
        for edge in edge_list:
            self._check_resolves(edge.source, edge)
            for target in edge.targets:
                self._check_resolves(target, edge)
            if edge.source in seen_sources:
                raise SchemaConfigurationError(f"{edge.source} declares more than one foreign key")
            seen_sources.add(edge.source)

        ordered = sorted(edge_list, key=lambda e: e.source)
        self._edges: tuple[ForeignKeyEdge, ...] = tuple(ordered)
        by_entity: dict[EntityName, list[ForeignKeyEdge]] = {name: [] for name in self._entities}
        for edge in ordered:
            by_entity[edge.source_entity].append(edge)
        self._edges_by_entity = MappingProxyType({name: tuple(found) for name, found in by_entity.items()})

        self._graph: MultiDiGraph[str] = nx.freeze(self._build_reference_graph())
        self._propagation: DiGraph[str] = nx.freeze(self._build_propagation_graph())

    def _check_resolves(self, ref: ColumnRef, edge: ForeignKeyEdge) -> None:
        if ref.entity not in self._entities:
            suggestions = _suggest_similar(ref.entity, self._entities)
            hint = f" Did you mean: {', '.join(suggestions)}?" if suggestions else ""
            raise SchemaConfigurationError(f"Foreign key {edge.source} refers to undeclared entity '{ref.entity}'.{hint}")
        declared = self._entities[ref.entity]
        if not declared.has_column(ref.column):
            suggestions = _suggest_similar(ref.column, declared.column_names)
            hint = f" Did you mean: {', '.join(suggestions)}?" if suggestions else ""
            raise SchemaConfigurationError(f"Foreign key {edge.source} refers to undeclared column '{ref}'.{hint}")

    def _build_reference_graph(self) -> MultiDiGraph[str]:
        graph: MultiDiGraph[str] = nx.MultiDiGraph()
        graph.add_nodes_from(self._entities)
        for edge in self._edges:
            for target in edge.targets:
                graph.add_edge(
                    edge.source_entity,
                    target.entity,
                    key=f"{edge.source_column}->{target}",
                    edge=edge,
                    kind=edge.kind,
                )
        return graph

    def _build_propagation_graph(self) -> DiGraph[str]:
        graph: DiGraph[str] = nx.DiGraph()
        graph.add_nodes_from(self._entities)
        for edge in self._edges:
            if edge.kind is EdgeKind.SELF_REFERENCE:
                continue
            for target in edge.targets:
                graph.add_edge(target.entity, edge.source_entity)
                if edge.prune_unreferenced:
                    graph.add_edge(edge.source_entity, target.entity)
        return graph

    @property
    def entities(self) -> tuple[EntitySchema, ...]:
        """Declared entities in name order."""
        return tuple(self._entities.values())

    @property
    def entity_names(self) -> tuple[EntityName, ...]:
        return tuple(self._entities)

    def has_entity(self, name: str) -> bool:
        return name in self._entities

    def get_entity(self, name: str) -> EntitySchema:
        """Get a declared entity.

        Raises:
            KeyError: If the entity is not declared
        """
        if name not in self._entities:
            raise KeyError(f"Entity not found: {name}")
        return self._entities[EntityName(name)]

    def edges(self) -> tuple[ForeignKeyEdge, ...]:
        """Every foreign-key edge, ordered by (entity name, column name)."""
        return self._edges

    def edges_from(self, entity: str) -> tuple[ForeignKeyEdge, ...]:
        """Foreign-key edges originating from an entity, in column-name order.

        Raises:
            KeyError: If the entity is not declared
        """
        return self._edges_by_entity[self.get_entity(entity).name]

    def edges_into(self, entity: str) -> tuple[ForeignKeyEdge, ...]:
        """Foreign-key edges with at least one alternative targeting an entity."""
        name = self.get_entity(entity).name
        return tuple(edge for edge in self._edges if any(target.entity == name for target in edge.targets))

    def dependents(self, entity: str) -> frozenset[EntityName]:
        """Entities whose rows can be orphaned by deletions in ``entity``."""
        name = self.get_entity(entity).name
        return frozenset(EntityName(successor) for successor in self._propagation.successors(name))

    def deletion_order(self, anchor: str) -> tuple[tuple[EntityName, ...], ...]:
        """Order in which the pruner visits entities after filtering ``anchor``.

        Restricts the propagation graph to what is reachable from the anchor,
        collapses strongly connected components and sorts the condensation
        topologically. Ties are broken by BFS distance from the anchor, then
        by name. Each element of the result is one component; components of
        more than one entity are cyclic and must be iterated to a fixed point.

        Raises:
            KeyError: If the anchor is not declared
            SchemaConfigurationError: If an entity with an any-of edge would be
                visited before one of its alternative targets
        """
        name = self.get_entity(anchor).name
        reachable = nx.descendants(self._propagation, name) | {name}
        subgraph = self._propagation.subgraph(reachable)
        distance: dict[str, int] = nx.single_source_shortest_path_length(subgraph, name)
        condensed = nx.condensation(subgraph)

        def component_key(node: int) -> tuple[int, str]:
            members = condensed.nodes[node]["members"]
            return (min(distance[member] for member in members), min(members))

        order = tuple(
            tuple(
                EntityName(member)
                for member in sorted(condensed.nodes[node]["members"], key=lambda m: (distance[m], m))
            )
            for node in nx.lexicographical_topological_sort(condensed, key=component_key)
        )
        self._check_disjunctive_order(order)
        return order

    def _check_disjunctive_order(self, order: tuple[tuple[EntityName, ...], ...]) -> None:
        position = {member: index for index, component in enumerate(order) for member in component}
        for index, component in enumerate(order):
            for member in component:
                for edge in self._edges_by_entity[member]:
                    if edge.kind is not EdgeKind.ANY_OF:
                        continue
                    late = [alt for alt in edge.alternatives if position.get(alt.entity, -1) > index]
                    if late:
                        raise SchemaConfigurationError(
                            f"Deletion order visits {member} before its any-of alternative(s) "
                            f"{', '.join(str(alt) for alt in late)} reach a fixed point"
                        )

    def get_nx_graph(self) -> MultiDiGraph[str]:
        """Return a frozen copy of the reference graph.

        Mutation attempts raise nx.NetworkXError.
        """
        return nx.freeze(self._graph.copy())  # type: ignore[no-any-return]

    def get_propagation_graph(self) -> DiGraph[str]:
        """Return a frozen copy of the propagation graph."""
        return nx.freeze(self._propagation.copy())  # type: ignore[no-any-return]
