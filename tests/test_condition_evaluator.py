import pytest

from app.schemas.email import EmailRecord
from app.schemas.email_rule import (
    BodyContainsCondition,
    DirectionCondition,
    FromContainsCondition,
    HasCategoryCondition,
    HasContactCondition,
    InFolderCondition,
    IsFlaggedCondition,
    Rule,
    SubjectContainsCondition,
    SubjectMatchesCondition,
    ToContainsCondition,
)
from app.services.condition_evaluator import dry_run_rule, evaluate_condition, rule_matches


def _email(**overrides) -> EmailRecord:
    data = {
        "id": 1,
        "subject": "Web General Enquiry - villa booking",
        "body": "Hello, we would like to book the villa for August.",
        "from_address": "Guest@Example.com",
        "to_address": "bookings@mybusiness.com",
        "categories": ["Source – Webform"],
    }
    data.update(overrides)
    return EmailRecord(**data)


class TestTextConditions:
    """Substring-style conditions over subject, sender, recipients and body."""

    def test_subject_contains_is_case_insensitive_by_default(self):
        cond = SubjectContainsCondition(value="web general enquiry")
        assert evaluate_condition(cond, _email()) is True

    def test_case_sensitive_flag_is_honoured(self):
        cond = SubjectContainsCondition(value="web general enquiry", case_sensitive=True)
        assert evaluate_condition(cond, _email()) is False

    @pytest.mark.parametrize(
        "operator,value,expected",
        [
            ("equals", "web general enquiry - villa booking", True),
            ("equals", "Web General Enquiry", False),
            ("starts_with", "Web General", True),
            ("starts_with", "villa", False),
            ("ends_with", "villa booking", True),
            ("ends_with", "Web", False),
        ],
    )
    def test_operators(self, operator, value, expected):
        cond = SubjectContainsCondition(value=value, operator=operator)
        assert evaluate_condition(cond, _email()) is expected

    def test_from_contains(self):
        assert evaluate_condition(FromContainsCondition(value="@example.com"), _email())
        assert not evaluate_condition(FromContainsCondition(value="@other.org"), _email())

    def test_to_contains(self):
        assert evaluate_condition(ToContainsCondition(value="bookings@"), _email())

    def test_body_contains(self):
        assert evaluate_condition(BodyContainsCondition(value="AUGUST"), _email())

    def test_missing_field_evaluates_false(self):
        cond = BodyContainsCondition(value="anything")
        assert evaluate_condition(cond, _email(body=None)) is False


class TestSubjectMatches:
    def test_regex_is_case_insensitive(self):
        cond = SubjectMatchesCondition(value=r"(booking|reservation)\b")
        assert evaluate_condition(cond, _email(subject="RESERVATION confirmed")) is True

    def test_invalid_pattern_evaluates_false(self):
        cond = SubjectMatchesCondition(value="([unclosed")
        assert evaluate_condition(cond, _email()) is False


class TestStructuralConditions:
    def test_has_category_is_exact(self):
        assert evaluate_condition(HasCategoryCondition(value="Source – Webform"), _email())
        assert not evaluate_condition(HasCategoryCondition(value="source – webform"), _email())

    def test_is_flagged(self):
        assert evaluate_condition(IsFlaggedCondition(), _email(is_flagged=True))
        assert not evaluate_condition(IsFlaggedCondition(), _email())

    def test_in_folder(self):
        cond = InFolderCondition(value="inbox-123")
        assert evaluate_condition(cond, _email(folder_id="inbox-123"))
        assert not evaluate_condition(cond, _email(folder_id=None))

    def test_direction_defaults_to_inbound(self):
        assert evaluate_condition(DirectionCondition(value="inbound"), _email())
        assert not evaluate_condition(DirectionCondition(value="outbound"), _email())

    def test_has_contact(self):
        assert evaluate_condition(HasContactCondition(value=False), _email())
        assert evaluate_condition(HasContactCondition(value=True), _email(contact_id=7))


class TestRuleMatching:
    def test_all_conditions_must_hold(self):
        rule = Rule(
            id=1,
            name="both",
            conditions=[
                SubjectContainsCondition(value="Enquiry"),
                FromContainsCondition(value="@nowhere.org"),
            ],
        )
        assert rule_matches(rule, _email()) is False

    def test_rule_without_conditions_matches_everything(self):
        assert rule_matches(Rule(id=1, name="catch-all"), _email()) is True

    def test_dry_run_reports_each_condition(self):
        conditions = [
            SubjectContainsCondition(value="Enquiry"),
            IsFlaggedCondition(),
        ]
        outcome = dry_run_rule(conditions, _email())
        assert outcome.matches is False
        assert [o.result for o in outcome.evaluated_conditions] == [True, False]
