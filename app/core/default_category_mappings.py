"""Default mail-category -> CRM field mappings.

Seeded into ``email_categories`` by
``CategoryMappingRepository.seed_if_empty`` on first start-up.  Users
can add, repoint or delete mappings through the API afterwards.
"""

from typing import Any, Dict, List

DEFAULT_CATEGORY_MAPPINGS: List[Dict[str, Any]] = [
    # Source
    {"category_name": "Source – Webform", "crm_field_type": "source", "crm_field_value": "webform"},
    {"category_name": "Source – Social", "crm_field_type": "source", "crm_field_value": "social"},
    {"category_name": "Source – Cold Call", "crm_field_type": "source", "crm_field_value": "cold_outreach"},
    {"category_name": "Source – Previous Enquiry", "crm_field_type": "source", "crm_field_value": "previous_enquiry"},
    {"category_name": "Source – Previous Client", "crm_field_type": "source", "crm_field_value": "previous_client"},
    {"category_name": "Source – Forwarded", "crm_field_type": "source", "crm_field_value": "forwarded"},
    # Pipeline stage
    {"category_name": "Stage – Follow-up", "crm_field_type": "stage", "crm_field_value": "follow_up"},
    {"category_name": "Stage – Proposal/Quote", "crm_field_type": "stage", "crm_field_value": "proposal"},
    {"category_name": "Stage – Booking/Confirmation", "crm_field_type": "stage", "crm_field_value": "booking"},
    # Sub-source (platform specific)
    {"category_name": "Sub-source – Instagram", "crm_field_type": "sub_source", "crm_field_value": "Instagram DM"},
    {"category_name": "Sub-source – Facebook", "crm_field_type": "sub_source", "crm_field_value": "Facebook Message"},
    {"category_name": "Sub-source – LinkedIn", "crm_field_type": "sub_source", "crm_field_value": "LinkedIn InMail"},
    # Finance
    {"category_name": "Finance – Payment", "crm_field_type": "sub_source", "crm_field_value": "Payment Received"},
]
