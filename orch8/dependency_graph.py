"""
DependencyGraph orders managed components so that every component is
converged after the components it depends on, and torn down before them
"""

# Standard
from typing import Dict, Iterable, List, Optional

# First Party
import alog

# Local
from .components import COMPONENTS, ComponentDefinition

log = alog.use_channel("DEPGR")


class DependencyGraph:
    """Directed acyclic graph of ComponentDefinitions keyed by name. An edge
    from A to B means that A must wait for B.
    """

    def __init__(self, components: Optional[Iterable[ComponentDefinition]] = None):
        self.__components: Dict[str, ComponentDefinition] = {}
        self.__edges: Dict[str, List[str]] = {}
        components = list(COMPONENTS.values() if components is None else components)
        for component in components:
            self.add_component(component)
        for component in components:
            for dependency in component.after:
                # Ordering edges only apply between components that are managed
                # together
                if dependency not in self.__components:
                    log.debug(
                        "Ignoring ordering of %s after unmanaged %s",
                        component.name,
                        dependency,
                    )
                    continue
                self.add_dependency(component.name, dependency)

    ## Modifiers ###############################################################

    def add_component(self, component: ComponentDefinition):
        """Add a component with no dependencies"""
        if component.name in self.__components:
            raise ValueError(
                f"Only one component named {component.name} can be added to a graph"
            )
        self.__components[component.name] = component
        self.__edges[component.name] = []

    def add_dependency(self, dependent: str, dependency: str):
        """Add an edge so that dependent is converged after dependency

        Args:
            dependent:  str
                The name of the component that must wait
            dependency:  str
                The name of the component that must be converged first
        """
        for name in (dependent, dependency):
            if name not in self.__components:
                raise ValueError(f"Component {name} is not present in the graph")
        if self._has_path(dependency, dependent):
            raise ValueError(
                f"Unable to add cyclic dependency {dependent} -> {dependency}"
            )
        if dependency not in self.__edges[dependent]:
            self.__edges[dependent].append(dependency)

    ## Accessors ###############################################################

    def get_component(self, name: str) -> Optional[ComponentDefinition]:
        """Get the component with the given name"""
        return self.__components.get(name)

    def get_dependencies(self, name: str) -> List[str]:
        """Get the names of the components the named component waits for"""
        return list(self.__edges.get(name, []))

    ## Graph Functions #########################################################

    def topology(self) -> List[ComponentDefinition]:
        """Get the components in convergence order. Ties are broken by name so
        that the order is deterministic.
        """
        found = set()
        topology = []

        def visit(name):
            if name in found:
                return
            found.add(name)
            for dependency in sorted(self.__edges[name]):
                visit(dependency)
            topology.append(self.__components[name])

        for name in sorted(self.__components):
            visit(name)

        log.debug3("Component topology: %s", [comp.name for comp in topology])
        return topology

    def reverse_topology(self) -> List[ComponentDefinition]:
        """Get the components in teardown order"""
        return list(reversed(self.topology()))

    ## Internal ################################################################

    def _has_path(self, start: str, end: str) -> bool:
        """Determine if there is a path of edges from start to end"""
        stack = [start]
        visited = set()
        while stack:
            name = stack.pop()
            if name == end:
                return True
            if name in visited:
                continue
            visited.add(name)
            stack.extend(self.__edges[name])
        return False

    def __contains__(self, name: str) -> bool:
        return name in self.__components

    def __iter__(self):
        return iter(self.topology())

    def __repr__(self) -> str:
        edges = ",".join(
            f"{name}:[{','.join(deps)}]" for name, deps in sorted(self.__edges.items())
        )
        return f"DependencyGraph({{{edges}}})"
