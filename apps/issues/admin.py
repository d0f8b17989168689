from django.contrib import admin

from apps.issues.models import CustomerIssue, IssueComment


class IssueCommentInline(admin.TabularInline):
    model = IssueComment
    extra = 0


@admin.register(CustomerIssue)
class CustomerIssueAdmin(admin.ModelAdmin):
    list_display = ("title", "customer", "priority", "status", "issue_type", "assigned_to", "created_at", "resolved_at")
    list_filter = ("status", "priority", "issue_type")
    search_fields = ("title", "customer__name")
    inlines = [IssueCommentInline]
