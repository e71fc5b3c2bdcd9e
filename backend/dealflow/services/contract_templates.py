from typing import Dict, List

from ..models.contract import ContractClause


# Opportunity deal_type -> contract template used when none is requested
DEAL_TYPE_TEMPLATES: Dict[str, str] = {
    "social_post": "social_media_campaign",
    "appearance": "appearance_agreement",
    "endorsement": "standard_endorsement",
    "merchandise": "merchandise_licensing",
    "autograph": "autograph_session",
    "camp": "camp_participation",
}

_COMMON_CLAUSES = [
    ("Agreement",
     "This Agreement is entered into between the Brand and the Athlete as identified in this contract.",
     True, False),
    ("Compensation",
     "The Brand agrees to pay the Athlete the compensation amount specified in this contract for the services rendered.",
     True, True),
    ("Term",
     "This Agreement shall commence on the Effective Date and continue until the Expiration Date unless terminated earlier.",
     True, True),
    ("NCAA Compliance",
     "Both parties agree to comply with all applicable NCAA rules and regulations regarding Name, Image, and Likeness (NIL) activities.",
     True, False),
    ("Termination",
     "Either party may terminate this Agreement with written notice if the other party materially breaches any term of this Agreement.",
     True, False),
    ("Governing Law",
     "This Agreement shall be governed by the laws of the state where the Athlete is enrolled as a student.",
     True, False),
]

_TEMPLATE_CLAUSES = {
    "social_media_campaign": [
        ("Content Requirements",
         "The Athlete agrees to create and post content as specified in the deliverables section of this contract.",
         True, True),
        ("Content Approval",
         "All content must be submitted to the Brand for approval at least 48 hours before posting.",
         False, True),
    ],
    "appearance_agreement": [
        ("Appearance Details",
         "The Athlete agrees to appear at the location, date, and time specified in this contract.",
         True, True),
        ("Attire and Conduct",
         "The Athlete agrees to dress appropriately and conduct themselves professionally during the appearance.",
         True, False),
    ],
    "merchandise_licensing": [
        ("License Grant",
         "The Athlete grants the Brand a limited, non-exclusive license to use their Name, Image, and Likeness on approved merchandise.",
         True, True),
        ("Quality Standards",
         "All merchandise bearing the Athlete's likeness must meet reasonable quality standards.",
         True, False),
    ],
}


def default_clauses(template_type: str) -> List[ContractClause]:
    """Standard clause set for a template type, ordered from 0."""
    rows = _COMMON_CLAUSES + _TEMPLATE_CLAUSES.get(template_type, [])
    return [
        ContractClause(
            id=f"{template_type}-{order}",
            title=title,
            content=content,
            is_required=is_required,
            is_editable=is_editable,
            order=order,
        )
        for order, (title, content, is_required, is_editable) in enumerate(rows)
    ]


def template_for_deal_type(deal_type: str, fallback: str = "standard_endorsement") -> str:
    return DEAL_TYPE_TEMPLATES.get(deal_type, fallback)
