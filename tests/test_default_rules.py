import pytest
from sqlalchemy import select

from app.core.config import settings
from app.core.default_rules import DEFAULT_EMAIL_RULES
from app.models.contact import Contact
from app.models.opportunity import Opportunity
from app.schemas.email import EmailRecordIn
from app.schemas.email_rule import InvalidAction
from app.schemas.rule_codec import actions_from_blob, conditions_from_blob

CONTACT_ACTIONS = {"create_opportunity", "create_lead", "create_activity", "create_followup"}


class TestDefaultRuleDefinitions:
    @pytest.mark.parametrize("rule", DEFAULT_EMAIL_RULES, ids=lambda r: r["name"])
    def test_rule_parses(self, rule):
        conditions_from_blob(rule["conditions"])
        actions = actions_from_blob(rule["actions"])
        assert not [a for a in actions if isinstance(a, InvalidAction)]

    @pytest.mark.parametrize("rule", DEFAULT_EMAIL_RULES, ids=lambda r: r["name"])
    def test_contact_is_resolved_before_it_is_needed(self, rule):
        types = [a["type"] for a in rule["actions"]]
        needing = [i for i, t in enumerate(types) if t in CONTACT_ACTIONS]
        if needing:
            assert "create_contact" in types
            assert types.index("create_contact") < needing[0]


class TestSeededRules:
    @pytest.mark.asyncio
    async def test_social_rule_works_without_sender_auto_create(self, stack, monkeypatch):
        monkeypatch.setattr(settings, "AUTO_CREATE_SENDER_CONTACTS", False)
        await stack.rules.seed_if_empty()

        result = await stack.processor.process_email(
            EmailRecordIn(
                external_id="social-1",
                subject="Instagram enquiry about August",
                from_address="follower@example.com",
                to_address="me@mybusiness.com",
            )
        )

        assert result.success
        social = [
            a for a in result.rule_results.action_results
            if a.rule_name == "Social Media Follow-up"
        ]
        assert social and all(a.success for a in social)
        contacts = (await stack.session.execute(select(Contact))).scalars().all()
        assert [c.email for c in contacts] == ["follower@example.com"]
        opportunity = (await stack.session.execute(select(Opportunity))).scalar_one()
        assert opportunity.source == "social"
        assert opportunity.contact_id == contacts[0].id
