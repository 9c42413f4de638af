"""
In-memory department tree.

Built from a single (id, parent_id) query and traversed iteratively, so deep
or malformed trees never hit the recursion limit.
"""
import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from orgtask.core.exceptions import ConstraintViolation
from orgtask.models.department import Department

logger = logging.getLogger(__name__)


class DepartmentTree:
    """Adjacency arena keyed by department id."""

    def __init__(self, edges: Iterable[Tuple[int, Optional[int]]]):
        self.parents: Dict[int, Optional[int]] = {}
        self.children: Dict[int, List[int]] = {}
        for department_id, parent_id in edges:
            self.parents[department_id] = parent_id
            self.children.setdefault(department_id, [])
        for department_id, parent_id in self.parents.items():
            if parent_id is not None:
                self.children.setdefault(parent_id, []).append(department_id)
        self._check_acyclic()

    @classmethod
    def load(cls, db: Session) -> "DepartmentTree":
        return cls(db.query(Department.id, Department.parent_id).all())

    def _check_acyclic(self) -> None:
        # Kahn's algorithm over parent -> child edges
        indegree = {
            department_id: (1 if parent_id is not None and parent_id in self.parents else 0)
            for department_id, parent_id in self.parents.items()
        }
        queue = deque(d for d, n in indegree.items() if n == 0)
        visited = 0
        while queue:
            current = queue.popleft()
            visited += 1
            for child in self.children.get(current, []):
                indegree[child] -= 1
                if indegree[child] == 0:
                    queue.append(child)
        if visited != len(self.parents):
            stuck = sorted(d for d, n in indegree.items() if n > 0)
            logger.error("department parent chain contains a cycle: %s", stuck)
            raise ConstraintViolation(
                "Department hierarchy contains a cycle",
                details={"department_ids": stuck},
            )

    def __contains__(self, department_id: int) -> bool:
        return department_id in self.parents

    def closure(self, department_id: int) -> Set[int]:
        """The department itself plus every transitive descendant."""
        result = {department_id}
        stack = [department_id]
        while stack:
            current = stack.pop()
            for child in self.children.get(current, []):
                if child not in result:
                    result.add(child)
                    stack.append(child)
        return result

    def closure_of_many(self, department_ids: Iterable[int]) -> Set[int]:
        result: Set[int] = set()
        for department_id in department_ids:
            if department_id not in result:
                result |= self.closure(department_id)
        return result

    def descendants(self, department_id: int) -> Set[int]:
        return self.closure(department_id) - {department_id}

    def is_within_own_scope(self, target_id: int, own_department_ids: Iterable[int]) -> bool:
        """True when target equals one of the own departments or descends from one."""
        own = set(own_department_ids)
        if target_id in own:
            return True
        # Walk up from the target instead of expanding every own subtree
        seen = {target_id}
        current = self.parents.get(target_id)
        while current is not None and current not in seen:
            if current in own:
                return True
            seen.add(current)
            current = self.parents.get(current)
        return False

    def would_create_cycle(self, department_id: int, new_parent_id: Optional[int]) -> bool:
        """True when re-parenting department_id under new_parent_id closes a loop."""
        if new_parent_id is None:
            return False
        return new_parent_id in self.closure(department_id)
