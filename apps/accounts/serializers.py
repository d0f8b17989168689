from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from apps.accounts.models import UserRole
from apps.common.permissions import user_has_capability

User = get_user_model()

PRIVILEGED_ROLES = {UserRole.ADMIN, UserRole.SUPER_ADMIN}


class EmployeeSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False, allow_blank=False, style={"input_type": "password"})
    created_by_username = serializers.CharField(source="created_by.username", read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "password",
            "first_name",
            "last_name",
            "email",
            "role",
            "is_active",
            "created_by",
            "created_by_username",
            "date_joined",
            "last_login",
        ]
        read_only_fields = ["id", "created_by", "date_joined", "last_login"]

    def validate_role(self, value):
        request = self.context.get("request")
        if value in PRIVILEGED_ROLES and not user_has_capability(request.user, "employees.manage.admins"):
            raise serializers.ValidationError("Only a super admin can grant admin roles.")
        return value

    def validate(self, attrs):
        if self.instance is None and not attrs.get("password"):
            raise serializers.ValidationError({"password": "Password is required."})
        if attrs.get("password"):
            validate_password(attrs["password"], user=self.instance)
        return attrs

    def create(self, validated_data):
        password = validated_data.pop("password")
        user = User(**validated_data)
        user.set_password(password)
        user.save()
        return user

    def update(self, instance, validated_data):
        password = validated_data.pop("password", None)
        for field_name, value in validated_data.items():
            setattr(instance, field_name, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance
