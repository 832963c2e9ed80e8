from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.InvestmentListCreateAPIView.as_view(), name='investment-list-create'),
    path('<int:id>/', my_views.InvestmentDetailAPIView.as_view(), name='investment-detail'),
    path('<int:id>/cancel/', my_views.InvestmentCancelAPIView.as_view(), name='investment-cancel'),
    path('<int:id>/status/', my_views.InvestmentStatusAPIView.as_view(), name='investment-status'),
    path('project/<int:project_id>/', my_views.ProjectInvestmentListAPIView.as_view(), name='project-investments'),
]
