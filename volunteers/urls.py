from django.urls import path
from . import views

app_name = "volunteers"

urlpatterns = [
    path("shifts/", views.ShiftListView.as_view(), name="shift-list"),
    path("shifts/<int:shift_id>/", views.ShiftDetailView.as_view(), name="shift-detail"),
    path("shifts/<int:shift_id>/assignments/", views.ShiftAssignmentsView.as_view(), name="shift-assignments"),
    path("assignments/<int:assignment_id>/", views.AssignmentDetailView.as_view(), name="assignment-detail"),
    path("assignments/<int:assignment_id>/check-in/", views.AssignmentCheckInView.as_view(), name="assignment-check-in"),
    path("assignments/<int:assignment_id>/check-out/", views.AssignmentCheckOutView.as_view(), name="assignment-check-out"),
]
