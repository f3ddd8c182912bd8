from django.urls import path
from . import views

urlpatterns = [
    path("projects/<int:project_id>/members", views.project_members, name="project_members"),
]
