"""
Default detection policies, stored on startup when missing.
"""
from typing import List, Dict, Any

def get_default_policies() -> List[Dict[str, Any]]:
    """
    Get the default policy set.

    Returns:
        List of policy dictionaries
    """
    return [
        {
            "name": "Detect PowerShell Execution",
            "rule": {"field": "process", "operator": "equals", "value": "powershell.exe"},
            "is_active": True,
            "mitre_tactic": "Execution",
            "mitre_technique_id": "T1059",
            "mitre_technique_name": "Command and Scripting Interpreter",
        },
        {
            "name": "Suspicious Network Connection",
            "rule": {"field": "dest_ip", "operator": "contains", "value": "45.33"},
            "is_active": True,
            "mitre_tactic": "Command and Control",
            "mitre_technique_id": "T1071",
            "mitre_technique_name": "Application Layer Protocol",
        },
        {
            "name": "Passwd File Access",
            "rule": {"field": "file", "operator": "contains", "value": "/etc/passwd"},
            "is_active": True,
            "mitre_tactic": "Credential Access",
            "mitre_technique_id": "T1003",
            "mitre_technique_name": "OS Credential Dumping",
        },
        {
            "name": "Detect PsExec Usage",
            "rule": {"field": "process", "operator": "equals", "value": "psexec.exe"},
            "is_active": True,
            "mitre_tactic": "Lateral Movement",
            "mitre_technique_id": "T1570",
            "mitre_technique_name": "Lateral Tool Transfer",
        },
        {
            "name": "Sensitive File Access (Shadow)",
            "rule": {"field": "command", "operator": "contains", "value": "/etc/shadow"},
            "is_active": True,
            "mitre_tactic": "Credential Access",
            "mitre_technique_id": "T1003",
            "mitre_technique_name": "OS Credential Dumping",
        },
        {
            # Matches only when an agent copies the event type into its details
            "name": "SSH Auth Failure Spike",
            "rule": {"field": "type", "operator": "equals", "value": "AUTH_FAILURE"},
            "is_active": True,
            "mitre_tactic": "Credential Access",
            "mitre_technique_id": "T1110",
            "mitre_technique_name": "Brute Force",
        },
    ]
