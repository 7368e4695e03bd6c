"""German prompts for key-result and course suggestions."""

from typing import Optional, Sequence

CATEGORY_CONTEXT = {
    "performance": (
        "Performance-KPIs im Digital Marketing: ROAS, CPA, CPM, CTR, Conversion Rate, "
        "Impressionen, Reichweite, Umsatz, Leads, Engagement Rate, AOV, CAC, LTV, "
        "Bounce Rate, Session-Dauer."
    ),
    "skill": (
        "Skill-Entwicklung: Zertifizierungen, Tool-Beherrschung (Meta Ads, Google Ads, "
        "TikTok Ads, Analytics, CRM), Workshops absolviert, neue Strategien getestet."
    ),
    "learning": (
        "Weiterbildung: Kurse abgeschlossen, Bücher gelesen, Konferenzen besucht, "
        "interne Wissenstransfers gehalten, Blog-Posts geschrieben."
    ),
    "career": (
        "Karriereentwicklung: Projekte geleitet, Teammitglieder betreut, "
        "Kundenpräsentationen gehalten, Cross-funktionale Zusammenarbeit, "
        "Verantwortungsbereiche erweitert."
    ),
}

KPI_SYSTEM_PROMPT = """Du bist ein KPI-Experte für eine Digital Marketing Agentur.
Das Team arbeitet mit OKRs (Objectives and Key Results).

Deine Aufgabe: Schlage messbare, realistische Key Results vor, die zum gegebenen OKR-Titel passen.

Regeln:
- Jedes Key Result MUSS einen numerischen start_value, target_value und eine unit haben
- Units sind IMMER auf Deutsch (z.B. "Prozent", "Euro", "Leads", "Stück", "Punkte")
- Die Werte müssen realistisch für ein Quartal sein
- Schlage 2-4 Key Results vor (nicht mehr, nicht weniger)
- Vermeide Duplikate zu bereits bestehenden Key Results
- Bevorzuge konkrete, messbare Metriken statt vager Formulierungen

Antworte NUR mit einem JSON-Objekt im folgenden Format:
{
  "suggestions": [
    { "title": "KR Titel", "start_value": 0, "target_value": 100, "unit": "Prozent" }
  ]
}"""

COURSE_SYSTEM_PROMPT = """Du bist ein KI-Assistent für Personalentwicklung und Weiterbildung in einem deutschen Unternehmen.
Du empfiehlst passende Kursthemen basierend auf dem Profil und den Zielen des Mitarbeiters.
Antworte ausschließlich im JSON-Format."""


def build_kpi_user_prompt(okr_title: str, category: str, existing_krs: Optional[Sequence[str]] = None) -> str:
    context = CATEGORY_CONTEXT.get(category, CATEGORY_CONTEXT["performance"])
    prompt = f'OKR-Titel: "{okr_title}"\nKategorie: {category}\nKontext: {context}'
    if existing_krs:
        listed = "\n".join(f"- {kr}" for kr in existing_krs)
        prompt += f"\n\nBereits vorhandene Key Results (NICHT duplizieren):\n{listed}"
    prompt += "\n\nSchlage passende Key Results vor:"
    return prompt


def build_course_user_prompt(
    craft_focus: Optional[str] = None,
    department: Optional[str] = None,
    okr_categories: Optional[Sequence[str]] = None,
) -> str:
    parts = []
    if craft_focus:
        parts.append(f"Fachlicher Schwerpunkt: {craft_focus}")
    if department:
        parts.append(f"Abteilung: {department}")
    if okr_categories:
        parts.append(f"OKR-Kategorien: {', '.join(okr_categories)}")
    context = "\n\nKontext des Mitarbeiters:\n" + "\n".join(parts) if parts else ""

    return f"""Empfehle 3-5 Kursthemen für die berufliche Weiterbildung.{context}

Antworte im folgenden JSON-Format:
{{
  "recommendations": [
    {{
      "title": "Kurstitel",
      "category": "design|development|marketing|leadership|data|communication|product|other",
      "reason": "Kurze Begründung warum dieser Kurs empfohlen wird"
    }}
  ]
}}"""
