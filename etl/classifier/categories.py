"""
Work-type category taxonomy.

``CATEGORY_KEYWORDS`` maps title/description keywords (EN/FR/DE/ES/IT/NL) to
work-type categories. ``CAREER_PATH_CATEGORIES`` maps the career-path tags
users pick to the categories that count as a match for them.
"""
import re
from typing import Dict, Iterable, List, Optional, Set, Tuple

from etl.schemas import SENIORITY_TAGS

FALLBACK_CATEGORY = "general-management"

CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("strategy-business-design", (
        "strategy", "strategic", "consultant", "consulting", "business analyst", "business design",
        "transformation", "conseil", "stratégie", "beratung", "berater", "strategie",
        "consultoría", "estrategia", "consulenza", "strategia", "adviseur",
    )),
    ("data-analytics", (
        "data", "analytics", "analyst", "business intelligence", "bi developer", "insights",
        "data scientist", "machine learning", "statistics", "analyste", "données",
        "datenanalyst", "daten", "analista", "datos", "dati", "gegevens",
    )),
    ("finance-investment", (
        "finance", "financial", "investment", "banking", "accounting", "accountant", "audit",
        "treasury", "equity", "asset management", "private equity", "tax", "finances",
        "comptable", "finanzen", "buchhaltung", "finanzas", "contable", "finanza", "financiën",
    )),
    ("tech-transformation", (
        "software", "developer", "engineer", "engineering", "it", "technology", "devops",
        "cloud", "cyber", "security", "digital", "développeur", "ingénieur", "entwickler",
        "informatik", "desarrollador", "ingeniero", "sviluppatore", "ingegnere", "ontwikkelaar",
    )),
    ("operations-supply-chain", (
        "operations", "supply chain", "logistics", "procurement", "purchasing", "planning",
        "opérations", "logistique", "achats", "logistik", "einkauf", "operaciones",
        "logística", "compras", "logistica", "acquisti", "inkoop",
    )),
    ("sales-client-success", (
        "sales", "business development", "account executive", "account manager",
        "customer success", "client success", "commercial", "ventes", "commercial",
        "vertrieb", "verkauf", "kundenbetreuung", "ventas", "comercial", "vendite",
        "commerciale", "verkoop",
    )),
    ("marketing-growth", (
        "marketing", "growth", "brand", "communications", "content", "seo", "social media",
        "pr", "communication", "marque", "kommunikation", "marca", "comunicación",
        "comunicazione",
    )),
    ("product-innovation", (
        "product", "product manager", "product owner", "ux", "innovation", "produit",
        "produkt", "producto", "prodotto",
    )),
    ("people-hr", (
        "hr", "human resources", "people", "talent", "recruiter", "recruiting",
        "ressources humaines", "personal", "personalwesen", "recursos humanos",
        "risorse umane",
    )),
    ("legal-compliance", (
        "compliance", "regulatory", "legal", "risk", "conformité", "juridique",
        "rechtsabteilung", "cumplimiento", "legale", "conformità",
    )),
    ("sustainability-esg", (
        "sustainability", "esg", "climate", "environmental", "energy transition",
        "durabilité", "nachhaltigkeit", "sostenibilidad", "sostenibilità", "duurzaamheid",
    )),
    ("creative-design", (
        "design", "designer", "creative", "graphic", "visual", "illustrator", "designer",
        "créatif", "gestaltung", "diseño", "diseñador", "grafico",
    )),
)

CAREER_PATH_CATEGORIES: Dict[str, Tuple[str, ...]] = {
    "strategy": ("strategy-business-design",),
    "consulting": ("strategy-business-design",),
    "data": ("data-analytics",),
    "finance": ("finance-investment",),
    "tech": ("tech-transformation",),
    "operations": ("operations-supply-chain",),
    "sales": ("sales-client-success",),
    "marketing": ("marketing-growth",),
    "product": ("product-innovation",),
    "people": ("people-hr",),
    "hr": ("people-hr",),
    "legal": ("legal-compliance",),
    "sustainability": ("sustainability-esg",),
    "creative": ("creative-design",),
    "management": (FALLBACK_CATEGORY,),
}

# Career paths that mean "no preference"
UNCONSTRAINED_CAREER_PATHS = frozenset({"unsure", "all", "any"})

_PATTERNS: Tuple[Tuple[str, re.Pattern], ...] = tuple(
    (
        category,
        re.compile(
            r"(?<!\w)(?:" + "|".join(re.escape(k) for k in sorted(set(keywords), key=len, reverse=True)) + r")(?!\w)",
            re.IGNORECASE,
        ),
    )
    for category, keywords in CATEGORY_KEYWORDS
)


def has_only_default_categories(categories: Optional[Iterable[str]]) -> bool:
    """True when the posting carries no work-type category yet."""
    return set(categories or ()) <= SENIORITY_TAGS


def match_categories(title: str, description: str = "") -> List[str]:
    """Return matched work-type categories, in table order.

    The title decides when it matches anything. Otherwise the description is
    consulted, ignoring short tokens like "it"/"pr"/"hr" that fire on
    ordinary prose.
    """
    matched = [category for category, pattern in _PATTERNS if pattern.search(title or "")]
    if matched:
        return matched
    for category, pattern in _PATTERNS:
        if any(len(hit.group(0)) > 2 for hit in pattern.finditer(description or "")):
            matched.append(category)
    return matched


def categories_for_career_paths(career_paths: Iterable[str]) -> Optional[Set[str]]:
    """Map career-path tags to categories.

    Returns None when the user has no constraint (empty list or an
    "unsure"-style tag).
    """
    paths = [p.strip().lower() for p in career_paths or () if p and p.strip()]
    if not paths or any(p in UNCONSTRAINED_CAREER_PATHS for p in paths):
        return None
    categories: Set[str] = set()
    for path in paths:
        categories.update(CAREER_PATH_CATEGORIES.get(path, (path,)))
    return categories
