from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.decorators import display
from unfold.contrib.filters.admin import RangeDateTimeFilter
from .models import VolunteerShift, VolunteerAssignment


class VolunteerAssignmentInline(TabularInline):
    model = VolunteerAssignment
    extra = 0
    fields = ('volunteer_id', 'status', 'check_in_time', 'check_out_time', 'notes')


@admin.register(VolunteerShift)
class VolunteerShiftAdmin(ModelAdmin):
    list_display = ['id', 'title', 'location', 'start_time', 'end_time', 'staffing', 'status_badge']
    list_filter = [
        'status',
        'location',
        ('start_time', RangeDateTimeFilter),
    ]
    search_fields = ['title', 'description', 'location']
    list_filter_submit = True
    readonly_fields = ['assigned_volunteers']
    inlines = [VolunteerAssignmentInline]

    @display(description=_("Staffing"))
    def staffing(self, obj):
        return f"{obj.assigned_volunteers}/{obj.required_volunteers}"

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        colors = {
            'OPEN': 'info',
            'FILLED': 'success',
            'IN_PROGRESS': 'warning',
            'COMPLETED': 'success',
            'CANCELLED': 'danger',
        }
        return colors.get(obj.status, 'info'), obj.get_status_display()


@admin.register(VolunteerAssignment)
class VolunteerAssignmentAdmin(ModelAdmin):
    list_display = ['id', 'shift', 'volunteer_id', 'status', 'check_in_time', 'check_out_time']
    list_filter = ['status']
    search_fields = ['shift__title', 'notes']
