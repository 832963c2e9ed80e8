from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.ProjectListCreateAPIView.as_view(), name='project-list-create'),
    path('<int:id>/', my_views.ProjectRetrieveUpdateAPIView.as_view(), name='project-detail'),
]
