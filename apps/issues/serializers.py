from rest_framework import serializers

from apps.issues.models import CustomerIssue, IssueComment


class IssueCommentSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source="created_by.username", read_only=True, default=None)

    class Meta:
        model = IssueComment
        fields = ["id", "issue", "comment", "is_internal", "created_by", "created_by_username", "created_at"]
        read_only_fields = ["id", "issue", "created_by", "created_at"]

    def validate_comment(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Comment cannot be empty.")
        return value


class CustomerIssueSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    order_number = serializers.CharField(source="order.order_number", read_only=True, default=None)
    created_by_username = serializers.CharField(source="created_by.username", read_only=True, default=None)
    assigned_to_username = serializers.CharField(source="assigned_to.username", read_only=True, default=None)
    comments = IssueCommentSerializer(many=True, read_only=True)

    class Meta:
        model = CustomerIssue
        fields = [
            "id",
            "customer",
            "customer_name",
            "order",
            "order_number",
            "title",
            "description",
            "priority",
            "status",
            "issue_type",
            "created_by",
            "created_by_username",
            "assigned_to",
            "assigned_to_username",
            "comments",
            "created_at",
            "updated_at",
            "resolved_at",
        ]
        read_only_fields = ["id", "created_by", "created_at", "updated_at", "resolved_at"]

    def validate(self, attrs):
        customer = attrs.get("customer", getattr(self.instance, "customer", None))
        order = attrs.get("order", getattr(self.instance, "order", None))
        if order is not None and customer is not None and order.customer_id not in (None, customer.pk):
            raise serializers.ValidationError({"order": "The order belongs to another customer."})
        return attrs
