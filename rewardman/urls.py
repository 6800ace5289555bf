from django.urls import path

from .views import (
    EarnEventView,
    HistoryView,
    RedeemView,
    RewardsView,
    SummaryView,
    TiersView,
)

app_name = "rewardman"

urlpatterns = [
    path("summary/<str:account_code>/", SummaryView.as_view(), name="summary"),
    path("history/<str:account_code>/", HistoryView.as_view(), name="history"),
    path("rewards/<str:account_code>/", RewardsView.as_view(), name="rewards"),
    path("redeem/<str:account_code>/", RedeemView.as_view(), name="redeem"),
    path("tiers/", TiersView.as_view(), name="tiers"),
    path("earn/", EarnEventView.as_view(), name="earn"),
]
