"""
Tests for status, severity and rank badges.
"""

import pytest

from seo_dashboard.badges import (
    AUDIT_STATUS_BADGES,
    OPPORTUNITY_BADGES,
    SEVERITY_BADGES,
    PositionDeltaConvention,
    audit_status_badge,
    campaign_status_badge,
    is_rank_improvement,
    issue_severity_badge,
    issue_type_label,
    opportunity_badge,
    overlap_badge,
    position_badge,
    position_change_badge,
    refresh_status_badge,
)
from seo_dashboard.models import (
    AuditStatus,
    IssueSeverity,
    IssueType,
    OpportunityType,
    OverlapType,
)


# ===================================================================
# Totality
# ===================================================================

class TestTotality:

    @pytest.mark.unit
    def test_every_enum_value_mapped(self):
        assert set(AUDIT_STATUS_BADGES) == set(AuditStatus)
        assert set(SEVERITY_BADGES) == set(IssueSeverity)
        assert set(OPPORTUNITY_BADGES) == set(OpportunityType)
        for overlap in OverlapType:
            assert overlap_badge(overlap).label

    @pytest.mark.unit
    @pytest.mark.parametrize("issue_type", list(IssueType))
    def test_every_issue_type_has_label(self, issue_type):
        label = issue_type_label(issue_type)
        assert label
        assert "_" not in label


# ===================================================================
# Audits
# ===================================================================

class TestAuditBadges:

    @pytest.mark.unit
    def test_in_progress_spins(self):
        badge = audit_status_badge("crawling")
        assert badge.label == "Crawling"
        assert badge.spinner is True

    @pytest.mark.unit
    def test_terminal_states(self):
        completed = audit_status_badge(AuditStatus.COMPLETED)
        assert completed.variant == "outline"
        assert "green" in completed.css_class
        assert completed.spinner is False
        assert audit_status_badge("failed").variant == "destructive"

    @pytest.mark.unit
    def test_unknown_status_fallback(self):
        badge = audit_status_badge("on_hold")
        assert badge.label == "On hold"
        assert badge.variant == "secondary"

    @pytest.mark.unit
    def test_severity(self):
        assert issue_severity_badge("critical").label == "Critical"
        assert "red" in issue_severity_badge(IssueSeverity.CRITICAL).css_class
        assert issue_severity_badge("blocker").variant == "outline"

    @pytest.mark.unit
    def test_issue_type_acronyms(self):
        assert issue_type_label(IssueType.MISSING_H1) == "Missing H1"
        assert issue_type_label("non_https") == "Non HTTPS"
        assert issue_type_label("client_error_4xx") == "Client error 4XX"


# ===================================================================
# Opportunities and positions
# ===================================================================

class TestOpportunityBadges:

    @pytest.mark.unit
    def test_known(self):
        assert opportunity_badge("position_8_20").label == "Position 8-20"
        assert opportunity_badge(OpportunityType.LOW_CTR).label == "Low CTR"

    @pytest.mark.unit
    def test_unknown_shows_raw_value(self):
        badge = opportunity_badge("new_entry")
        assert badge.label == "new_entry"
        assert badge.variant == "secondary"


class TestPositionBadges:

    @pytest.mark.unit
    @pytest.mark.parametrize("position,label,variant", [
        (1, "#1", "default"),
        (3, "#3", "default"),
        (4, "#4", "secondary"),
        (10, "#10", "secondary"),
        (11, "#11", "outline"),
        (None, "--", "outline"),
    ])
    def test_thresholds(self, position, label, variant):
        badge = position_badge(position)
        assert badge.label == label
        assert badge.variant == variant


class TestPositionChange:

    @pytest.mark.unit
    def test_default_treats_positive_as_improvement(self):
        assert is_rank_improvement(5) is True
        assert is_rank_improvement(-3) is False
        assert is_rank_improvement(0) is None
        assert is_rank_improvement(None) is None

    @pytest.mark.unit
    def test_inverted_convention(self):
        conv = PositionDeltaConvention.CURRENT_MINUS_PREVIOUS
        assert is_rank_improvement(-5, conv) is True
        assert is_rank_improvement(5, conv) is False

    @pytest.mark.unit
    def test_badge_consistent_with_predicate(self):
        for conv in PositionDeltaConvention:
            for change in (-4, 4):
                badge = position_change_badge(change, conv)
                assert (badge.trend == "up") is is_rank_improvement(change, conv)

    @pytest.mark.unit
    def test_badge_labels(self):
        up = position_change_badge(2)
        assert (up.label, up.trend) == ("+2", "up")
        down = position_change_badge(2, PositionDeltaConvention.CURRENT_MINUS_PREVIOUS)
        assert (down.label, down.trend) == ("-2", "down")
        assert position_change_badge(None).label == "--"


# ===================================================================
# Refresh, overlap and campaigns
# ===================================================================

class TestMiscBadges:

    @pytest.mark.unit
    def test_refresh_status(self):
        assert refresh_status_badge(None) is None
        assert refresh_status_badge("success").variant == "default"
        assert refresh_status_badge("failed").variant == "destructive"
        assert refresh_status_badge("rate_limited").variant == "secondary"
        assert refresh_status_badge("weird").label == "weird"

    @pytest.mark.unit
    def test_overlap(self):
        assert overlap_badge("paid_only").label == "Paid Only"
        assert overlap_badge("both").variant == "default"
        assert overlap_badge("mystery").variant == "outline"

    @pytest.mark.unit
    def test_campaign_status(self):
        assert campaign_status_badge("ENABLED").variant == "default"
        assert campaign_status_badge("paused").variant == "secondary"
        assert campaign_status_badge("REMOVED").variant == "destructive"
        assert campaign_status_badge(None).label == "UNKNOWN"
        assert campaign_status_badge("DRAFT").variant == "outline"
