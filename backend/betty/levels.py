from __future__ import annotations
from typing import Dict, Tuple

XP_PER_LEVEL = 1000

LEVEL_TITLES: Dict[int, str] = {
	1: "Novice Coder",
	2: "Apprenti du Code",
	3: "Compagnon des Bits",
	4: "Acolyte Algorithmique",
	5: "Initié de la Syntaxe",
	6: "Scribe de Scripts",
	7: "Artisan Binaire",
	8: "Technicien des Textes",
	9: "Maçon du Markup",
	10: "Vétéran du Versioning",
	20: "Maestro du Middleware",
	30: "Architecte d'API",
	40: "Virtuose de la Virtualisation",
	50: "Champion des Composants",
	60: "Seigneur des Services",
	70: "Maître du Déploiement",
	80: "Oracle de l'ORM",
	90: "Légende du Legacy",
	100: "Transcendeur de la Technologie",
}


def title_for_level(level: int) -> str:
	for threshold in sorted(LEVEL_TITLES, reverse=True):
		if level >= threshold:
			return LEVEL_TITLES[threshold]
	return LEVEL_TITLES[1]


def apply_xp(level: int, xp: int, gained: int) -> Tuple[int, int]:
	"""Add ``gained`` XP and roll over into new levels.

	Reaching level N+1 costs N * 1000 XP; the carried XP is what remains after
	every threshold crossed.
	"""
	level = level or 1
	xp = (xp or 0) + max(0, gained)
	needed = level * XP_PER_LEVEL
	while xp >= needed:
		xp -= needed
		level += 1
		needed = level * XP_PER_LEVEL
	return level, xp
