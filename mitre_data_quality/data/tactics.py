"""MITRE ATT&CK Enterprise tactics in matrix column order.

The catalog is fixed and never derived from the STIX bundle.
"""

from mitre_data_quality.schemas.taxonomy import Tactic

# (stix id, external id, name, short name, description)
_TACTICS = [
    (
        "x-mitre-tactic--daa4cbb1-b4f4-4723-a824-7f1efd6e0592",
        "TA0043",
        "Reconnaissance",
        "reconnaissance",
        "The adversary is trying to gather information they can use to plan future operations.",
    ),
    (
        "x-mitre-tactic--d679bca2-e57d-4935-8650-8031c87a4400",
        "TA0042",
        "Resource Development",
        "resource-development",
        "The adversary is trying to establish resources they can use to support operations.",
    ),
    (
        "x-mitre-tactic--ffd5bcee-6e16-4dd2-8eca-7b3beedf33ca",
        "TA0001",
        "Initial Access",
        "initial-access",
        "The adversary is trying to get into your network.",
    ),
    (
        "x-mitre-tactic--4ca45d45-df4d-4613-8980-bac22d278fa5",
        "TA0002",
        "Execution",
        "execution",
        "The adversary is trying to run malicious code.",
    ),
    (
        "x-mitre-tactic--5bc1d813-693e-4823-9961-abf9af4b0e92",
        "TA0003",
        "Persistence",
        "persistence",
        "The adversary is trying to maintain their foothold.",
    ),
    (
        "x-mitre-tactic--5e29b093-294e-49e9-a803-dab3d73b77dd",
        "TA0004",
        "Privilege Escalation",
        "privilege-escalation",
        "The adversary is trying to gain higher-level permissions.",
    ),
    (
        "x-mitre-tactic--78b23412-0651-46d7-a540-170a1ce8bd5a",
        "TA0005",
        "Defense Evasion",
        "defense-evasion",
        "The adversary is trying to avoid being detected.",
    ),
    (
        "x-mitre-tactic--2558fd61-8c75-4730-94c4-11926db2a263",
        "TA0006",
        "Credential Access",
        "credential-access",
        "The adversary is trying to steal account names and passwords.",
    ),
    (
        "x-mitre-tactic--c17c5845-175e-4421-9713-829d0573dbc9",
        "TA0007",
        "Discovery",
        "discovery",
        "The adversary is trying to figure out your environment.",
    ),
    (
        "x-mitre-tactic--7141578b-e50b-4dcc-bfa4-08a8dd689e9e",
        "TA0008",
        "Lateral Movement",
        "lateral-movement",
        "The adversary is trying to move through your environment.",
    ),
    (
        "x-mitre-tactic--d108ce10-2419-4cf9-a774-46161d6c6cfe",
        "TA0009",
        "Collection",
        "collection",
        "The adversary is trying to gather data of interest to their goal.",
    ),
    (
        "x-mitre-tactic--f72804c5-f15a-449e-a5da-2eecd181f813",
        "TA0011",
        "Command and Control",
        "command-and-control",
        "The adversary is trying to communicate with compromised systems to control them.",
    ),
    (
        "x-mitre-tactic--9a4e74ab-5008-408c-84bf-a10dfbc53462",
        "TA0010",
        "Exfiltration",
        "exfiltration",
        "The adversary is trying to steal data.",
    ),
    (
        "x-mitre-tactic--5569339b-94c2-49ee-afb3-2222936582c8",
        "TA0040",
        "Impact",
        "impact",
        "The adversary is trying to manipulate, interrupt, or destroy your systems and data.",
    ),
]

MITRE_TACTICS: tuple[Tactic, ...] = tuple(
    Tactic(
        id=stix_id,
        external_id=external_id,
        name=name,
        short_name=short_name,
        description=description,
        url=f"https://attack.mitre.org/tactics/{external_id}",
    )
    for stix_id, external_id, name, short_name, description in _TACTICS
)
