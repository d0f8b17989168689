import uuid

from django.conf import settings
from django.db import models


class IssuePriority(models.TextChoices):
    LOW = "Low", "Low"
    MEDIUM = "Medium", "Medium"
    HIGH = "High", "High"
    CRITICAL = "Critical", "Critical"


class IssueStatus(models.TextChoices):
    OPEN = "Open", "Open"
    IN_PROGRESS = "In Progress", "In Progress"
    RESOLVED = "Resolved", "Resolved"
    CLOSED = "Closed", "Closed"


class IssueType(models.TextChoices):
    COMPLAINT = "Complaint", "Complaint"
    REFUND_REQUEST = "Refund Request", "Refund Request"
    REPLACEMENT_REQUEST = "Replacement Request", "Replacement Request"
    TECHNICAL_SUPPORT = "Technical Support", "Technical Support"
    GENERAL_INQUIRY = "General Inquiry", "General Inquiry"


CLOSED_STATUSES = {IssueStatus.RESOLVED, IssueStatus.CLOSED}


class CustomerIssue(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey("customers.Customer", on_delete=models.CASCADE, related_name="issues")
    order = models.ForeignKey("orders.Order", null=True, blank=True, on_delete=models.SET_NULL, related_name="issues")
    title = models.CharField(max_length=200)
    description = models.TextField()
    priority = models.CharField(max_length=20, choices=IssuePriority.choices, default=IssuePriority.MEDIUM)
    status = models.CharField(max_length=20, choices=IssueStatus.choices, default=IssueStatus.OPEN)
    issue_type = models.CharField(max_length=30, choices=IssueType.choices, default=IssueType.GENERAL_INQUIRY)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="issues_created",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="issues_assigned",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "priority"], name="issue_status_priority_idx"),
            models.Index(fields=["customer", "created_at"], name="issue_customer_created_idx"),
        ]

    def __str__(self):
        return self.title


class IssueComment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    issue = models.ForeignKey(CustomerIssue, on_delete=models.CASCADE, related_name="comments")
    comment = models.TextField()
    is_internal = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="issue_comments",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
