from types import SimpleNamespace

import pytest

from app.core.exceptions import ConfigurationError
from app.schemas.email_rule import (
    CreateActivityAction,
    CreateFollowupAction,
    InvalidAction,
    Rule,
    SubjectContainsCondition,
    UpdateOpportunityStageAction,
)
from app.schemas.rule_codec import (
    action_from_blob,
    action_to_blob,
    actions_from_blob,
    condition_from_blob,
    rule_from_row,
    sort_rules,
)


class TestConditionParsing:
    def test_defaults_operator_to_contains(self):
        cond = condition_from_blob({"type": "subject_contains", "value": "Quote"})
        assert isinstance(cond, SubjectContainsCondition)
        assert cond.operator.value == "contains"

    def test_unknown_type_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            condition_from_blob({"type": "sent_on_tuesday", "value": "x"})

    def test_missing_value_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            condition_from_blob({"type": "subject_contains"})

    def test_non_object_is_rejected(self):
        with pytest.raises(ConfigurationError):
            condition_from_blob("subject_contains")


class TestActionParsing:
    def test_activity_type_param_is_renamed(self):
        action = action_from_blob(
            {"type": "create_activity", "params": {"type": "webform_submission"}}
        )
        assert isinstance(action, CreateActivityAction)
        assert action.activity_type.value == "webform_submission"

    def test_followup_type_param_is_renamed(self):
        action = action_from_blob({"type": "create_followup", "params": {"type": "call"}})
        assert isinstance(action, CreateFollowupAction)
        assert action.followup_type == "call"

    def test_stage_display_name_is_normalised(self):
        action = action_from_blob(
            {"type": "update_opportunity_stage", "params": {"stage_name": "Follow-up"}}
        )
        assert isinstance(action, UpdateOpportunityStageAction)
        assert action.stage.value == "follow_up"

    def test_assign_category_requires_category(self):
        with pytest.raises(ConfigurationError):
            action_from_blob({"type": "assign_category", "params": {}})

    def test_bad_action_is_kept_as_invalid_action(self):
        actions = actions_from_blob(
            [
                {"type": "assign_category", "params": {}},
                {"type": "create_contact"},
            ]
        )
        assert isinstance(actions[0], InvalidAction)
        assert actions[0].declared_type == "assign_category"
        assert actions[1].type == "create_contact"

    def test_stored_layout_is_restored_on_write(self):
        blob = action_to_blob(CreateActivityAction(activity_type="email_received"))
        assert blob["type"] == "create_activity"
        assert blob["params"]["type"] == "email_received"
        assert "activity_type" not in blob["params"]


class TestRules:
    def test_rule_from_row_rejects_bad_conditions(self):
        row = SimpleNamespace(
            id=4,
            name="broken",
            priority=1,
            enabled=True,
            conditions=[{"type": "subject_contains"}],
            actions=[],
        )
        with pytest.raises(ConfigurationError):
            rule_from_row(row)

    def test_rule_from_row_allows_empty_conditions(self):
        row = SimpleNamespace(
            id=5, name="all", priority=None, enabled=True, conditions=None, actions=None
        )
        rule = rule_from_row(row)
        assert rule.conditions == []
        assert rule.priority == 0

    def test_sort_is_priority_desc_then_id_asc(self):
        rules = [
            Rule(id=1, name="low", priority=5),
            Rule(id=3, name="high-b", priority=10),
            Rule(id=2, name="high-a", priority=10),
        ]
        assert [r.id for r in sort_rules(rules)] == [2, 3, 1]
