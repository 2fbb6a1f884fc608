"""ORM models for the discount kernel."""

from discount_kernel.models.approval import (
    ApprovalSettingsModel,
    DiscountApprovalRequestModel,
)
from discount_kernel.models.auto_rule import AutoDiscountRuleModel
from discount_kernel.models.campaign import SeasonalCampaignModel
from discount_kernel.models.discount_code import CodeUsageModel, DiscountCodeModel
from discount_kernel.models.loyalty import (
    CustomerLoyaltyAccountModel,
    LoyaltyProgramModel,
    LoyaltyTransactionModel,
)
from discount_kernel.models.volume_tier import VolumeDiscountTierSetModel

__all__ = [
    "ApprovalSettingsModel",
    "AutoDiscountRuleModel",
    "CodeUsageModel",
    "CustomerLoyaltyAccountModel",
    "DiscountApprovalRequestModel",
    "DiscountCodeModel",
    "LoyaltyProgramModel",
    "LoyaltyTransactionModel",
    "SeasonalCampaignModel",
    "VolumeDiscountTierSetModel",
]
