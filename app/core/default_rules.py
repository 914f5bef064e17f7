"""Default email rules seeded on first start-up.

Conditions within a rule are ANDed, so alternatives are expressed as a
single ``subject_matches`` pattern.  Stored in the JSON blob layout
understood by :mod:`app.schemas.rule_codec`.

Every rule whose actions need a contact starts with ``create_contact``
so it works whether or not ``AUTO_CREATE_SENDER_CONTACTS`` resolved the
sender beforehand.  The "Auto-Create Contact for New Senders" rule only
adds contacts when that setting is off.
"""

from typing import Any, Dict, List

DEFAULT_EMAIL_RULES: List[Dict[str, Any]] = [
    {
        "name": "Auto-Create Contact for New Senders",
        "description": "Create a contact for every inbound email from an unknown sender",
        "priority": 15,
        "enabled": True,
        "conditions": [
            {"type": "direction", "value": "inbound"},
            {"type": "from_contains", "value": "@", "operator": "contains"},
            {"type": "has_contact", "value": False},
        ],
        "actions": [
            {"type": "create_contact", "params": {"contact_type": "Other"}},
        ],
    },
    {
        "name": "Web General Enquiry",
        "description": "Open an opportunity for website general enquiries",
        "priority": 11,
        "enabled": True,
        "conditions": [
            {"type": "subject_contains", "value": "Web General Enquiry", "operator": "contains"},
        ],
        "actions": [
            {"type": "create_contact", "params": {}},
            {"type": "create_lead", "params": {"source": "webform", "notes": "Webform submission: {{subject}}"}},
            {
                "type": "create_opportunity",
                "params": {"source": "webform", "sub_source": "Web General Enquiry", "title": "{{subject}}"},
            },
            {
                "type": "create_activity",
                "params": {"type": "webform_submission", "description": "Webform submission: {{subject}}"},
            },
        ],
    },
    {
        "name": "Webform Detection",
        "description": "Detect emails from webform submissions",
        "priority": 10,
        "enabled": True,
        "conditions": [
            {"type": "subject_matches", "value": r"new web enquiry|web enquiry|contact form"},
        ],
        "actions": [
            {"type": "create_contact", "params": {}},
            {"type": "assign_category", "params": {"category": "Source – Webform"}},
            {
                "type": "create_opportunity",
                "params": {"source": "webform", "sub_source": "Website Form", "title": "{{subject}}"},
            },
            {
                "type": "create_activity",
                "params": {"type": "email_received", "description": "Webform enquiry received"},
            },
        ],
    },
    {
        "name": "Enquiry Template Detection",
        "description": "Move the linked opportunity to proposal when a quote goes out",
        "priority": 9,
        "enabled": True,
        "conditions": [
            {"type": "subject_matches", "value": r"\[(enquiry|quote|proposal)\]"},
        ],
        "actions": [
            {"type": "assign_category", "params": {"category": "Stage – Proposal/Quote"}},
            {"type": "update_opportunity_stage", "params": {"stage_name": "Proposal"}},
        ],
    },
    {
        "name": "Booking Confirmation",
        "description": "Mark the linked opportunity as won on booking confirmation",
        "priority": 8,
        "enabled": True,
        "conditions": [
            {"type": "subject_matches", "value": r"(booking|reservation) confirmed"},
        ],
        "actions": [
            {"type": "link_to_opportunity", "params": {}},
            {"type": "assign_category", "params": {"category": "Stage – Booking/Confirmation"}},
            {"type": "mark_opportunity_won", "params": {}},
        ],
    },
    {
        "name": "Social Media Follow-up",
        "description": "Detect social media follow-up emails",
        "priority": 7,
        "enabled": True,
        "conditions": [
            {"type": "subject_matches", "value": r"instagram|facebook|linkedin|\[social enquiry\]"},
        ],
        "actions": [
            {"type": "create_contact", "params": {}},
            {"type": "assign_category", "params": {"category": "Source – Social"}},
            {
                "type": "create_opportunity",
                "params": {"source": "social", "sub_source": "Social Media Follow-up"},
            },
        ],
    },
    {
        "name": "Previous Client/Enquiry",
        "description": "Detect emails from previous clients or enquiries",
        "priority": 6,
        "enabled": True,
        "conditions": [
            {"type": "subject_matches", "value": r"returning|previous"},
        ],
        "actions": [
            {"type": "create_contact", "params": {}},
            {"type": "assign_category", "params": {"category": "Source – Previous Client"}},
            {
                "type": "create_opportunity",
                "params": {"source": "previous_client", "sub_source": "Returning Client"},
            },
        ],
    },
    {
        "name": "Commission Evidence",
        "description": "Link payment and invoice emails to the open opportunity",
        "priority": 5,
        "enabled": True,
        "conditions": [
            {"type": "subject_matches", "value": r"invoice|deposit received|final payment|payment received"},
        ],
        "actions": [
            {"type": "link_to_opportunity", "params": {}},
            {"type": "assign_category", "params": {"category": "Finance – Payment"}},
        ],
    },
    {
        "name": "Flagged Follow-up",
        "description": "Schedule a follow-up for flagged emails",
        "priority": 4,
        "enabled": True,
        "conditions": [
            {"type": "is_flagged"},
        ],
        "actions": [
            {"type": "create_contact", "params": {}},
            {"type": "create_followup", "params": {"type": "email", "notes": "Follow up: {{subject}}"}},
            {"type": "assign_category", "params": {"category": "Stage – Follow-up"}},
        ],
    },
]
