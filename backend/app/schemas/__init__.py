from .home_size_dispute import (
    EvidencePhotoIn,
    DisputeCreate,
    HomeownerResponseIn,
    OwnerResolveIn,
    ResolverDecision,
    HomeSummary,
    PartySummary,
    CleanerDetail,
    HomeownerDetail,
    EvidencePhotoView,
    CleanerDisputeView,
    HomeownerDisputeView,
    ResolverDisputeView,
    DisputeView,
)

__all__ = [
    "EvidencePhotoIn",
    "DisputeCreate",
    "HomeownerResponseIn",
    "OwnerResolveIn",
    "ResolverDecision",
    "HomeSummary",
    "PartySummary",
    "CleanerDetail",
    "HomeownerDetail",
    "EvidencePhotoView",
    "CleanerDisputeView",
    "HomeownerDisputeView",
    "ResolverDisputeView",
    "DisputeView",
]
