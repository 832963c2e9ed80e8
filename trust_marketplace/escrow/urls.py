from django.urls import path

from . import views

urlpatterns = [
    path("", views.EscrowContractListView.as_view(), name="escrow-list"),
    path("<int:pk>/", views.EscrowContractDetailView.as_view(), name="escrow-detail"),
    path("investment/<int:investment_id>/", views.EscrowByInvestmentView.as_view(), name="escrow-by-investment"),
    path("<int:pk>/release/", views.EscrowReleaseFundsView.as_view(), name="escrow-release"),
    path("<int:pk>/refund/", views.EscrowRefundView.as_view(), name="escrow-refund"),
    path("<int:pk>/dispute/", views.EscrowDisputeView.as_view(), name="escrow-dispute"),
    path("<int:pk>/lock/", views.EscrowLockToggleView.as_view(), name="escrow-lock"),
    path("<int:pk>/sync/", views.EscrowSyncView.as_view(), name="escrow-sync"),
]
