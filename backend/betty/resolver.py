"""Quest availability resolution.

Given the quests of a curriculum, the prerequisite edges between them and the
set of quest ids a user already finished, label every quest as ``completed``,
``available`` or ``locked``.

Labels are propagated to a fixed point: a quest becomes available once every
one of its prerequisites is labeled completed, and whatever is still unlabeled
when a full pass adds nothing is locked. A prerequisite id that is not part of
the quest set can never be labeled, so its dependents stay locked; the same
holds for quests that only reach each other through a cycle.
"""
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Set, Tuple

COMPLETED = "completed"
AVAILABLE = "available"
LOCKED = "locked"

Edge = Tuple[str, str]


def prerequisites_of(quests: Iterable[Any], edges: Iterable[Edge]) -> Dict[str, List[str]]:
	"""Map each quest id to the ids it requires, in edge order.

	Edges pointing at quests outside ``quests`` are ignored; their source ids
	are kept as-is even when they reference no known quest.
	"""
	prereqs: Dict[str, List[str]] = {q.id: [] for q in quests}
	for from_id, to_id in edges:
		if to_id in prereqs:
			prereqs[to_id].append(from_id)
	return prereqs


def resolve(quests: Iterable[Any], edges: Iterable[Edge], completed: Set[str]) -> Dict[str, str]:
	quests = list(quests)
	prereqs = prerequisites_of(quests, edges)

	statuses: Dict[str, str] = {qid: COMPLETED for qid in prereqs if qid in completed}

	changed = True
	while changed:
		changed = False
		for qid, required in prereqs.items():
			if qid in statuses:
				continue
			if all(statuses.get(p) == COMPLETED for p in required):
				statuses[qid] = AVAILABLE
				changed = True

	for qid in prereqs:
		statuses.setdefault(qid, LOCKED)
	return statuses
