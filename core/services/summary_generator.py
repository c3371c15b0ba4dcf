"""
Deterministic analyst summaries for alerts.

The text is templated from the detection metadata, so identical input always
yields identical output.
"""
from typing import Optional

BEHAVIORAL_TEMPLATE = (
    "Behavioral Anomaly: {source} exhibited unusual activity{tactic_clause}. "
    "The system detected a deviation from historical baselines, suggesting a potential "
    "outlier event that requires manual verification."
)

NARRATIVE_TEMPLATES = (
    "Threat Intelligence analysis indicates that {source} attempted {detection_name}{tactic_clause}. "
    "This pattern is strongly associated with known malicious activity.",
    "Security Alert: {source} triggered a high-fidelity detection for {detection_name}. "
    "Cross-referencing with MITRE framework suggests an attempt at {tactic_or_default}.",
    "Automated Response: {detection_name} was intercepted on agent {source}. "
    "The activity matches signature T1059 (Command and Scripting Interpreter) or similar behaviors.",
)


def generate_ai_summary(
    detection_name: str,
    source: str,
    mitre_tactic: Optional[str] = None,
    mitre_technique_id: Optional[str] = None,
) -> str:
    tactic_clause = ""
    if mitre_tactic:
        tactic_clause = f" utilizing {mitre_tactic} techniques (ID: {mitre_technique_id or 'N/A'})"

    if "Anomaly" in detection_name:
        return BEHAVIORAL_TEMPLATE.format(source=source, tactic_clause=tactic_clause)

    # Template choice keyed on the source so repeated renders agree
    template = NARRATIVE_TEMPLATES[len(source) % len(NARRATIVE_TEMPLATES)]
    return template.format(
        source=source,
        detection_name=detection_name,
        tactic_clause=tactic_clause,
        tactic_or_default=mitre_tactic or "unauthorized access",
    )
