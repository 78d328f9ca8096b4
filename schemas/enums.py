from enum import Enum


class DealStage(str, Enum):
    NEW_LEAD = "NEW_LEAD"
    DOCS_REQUESTED = "DOCS_REQUESTED"
    DOCS_RECEIVED = "DOCS_RECEIVED"
    IN_UNDERWRITING = "IN_UNDERWRITING"
    APPROVED = "APPROVED"
    CONTRACT_SENT = "CONTRACT_SENT"
    CONTRACT_SIGNED = "CONTRACT_SIGNED"
    FUNDED = "FUNDED"
    DECLINED = "DECLINED"
    DEAD = "DEAD"


class DecisionKind(str, Enum):
    APPROVE = "APPROVE"
    DECLINE = "DECLINE"
    COUNTER = "COUNTER"


class PaperGrade(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class IndustryRiskTier(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class RevenueTrend(str, Enum):
    GROWING = "GROWING"
    STABLE = "STABLE"
    DECLINING = "DECLINING"


class DealSource(str, Enum):
    DIRECT = "DIRECT"
    BROKER = "BROKER"
    REFERRAL = "REFERRAL"
    WEBSITE = "WEBSITE"
    EMAIL = "EMAIL"
    IMPORT = "IMPORT"


class UccStatus(str, Enum):
    FILED = "FILED"
    ACCEPTED = "ACCEPTED"
    TERMINATED = "TERMINATED"
    LAPSED = "LAPSED"
