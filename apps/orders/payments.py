"""Payment details keyed by payment method.

Each method has its own serializer listing exactly the columns it owns.
Writing goes through the variant for the order's method and blanks the
other variants' columns; reading renders only the variant's columns.
"""
from decimal import Decimal

from rest_framework import serializers

from apps.orders.models import CryptoCurrency, CryptoNetwork, PaymentDetail, PaymentMethod


class CashPaymentSerializer(serializers.Serializer):
    cash_received_by = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    cash_receipt_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class CryptoPaymentSerializer(serializers.Serializer):
    crypto_currency = serializers.ChoiceField(choices=CryptoCurrency.choices)
    crypto_network = serializers.ChoiceField(choices=CryptoNetwork.choices)
    crypto_username = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    crypto_wallet_address = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    crypto_transaction_hash = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs["crypto_currency"] == CryptoCurrency.BTC and attrs["crypto_network"] != CryptoNetwork.BITCOIN:
            raise serializers.ValidationError({"crypto_network": "BTC payments must use the Bitcoin network."})
        if attrs["crypto_currency"] != CryptoCurrency.BTC and attrs["crypto_network"] == CryptoNetwork.BITCOIN:
            raise serializers.ValidationError({"crypto_network": "The Bitcoin network only carries BTC."})
        return attrs


class BankTransferPaymentSerializer(serializers.Serializer):
    bank_transaction_reference = serializers.CharField(max_length=150)
    bank_sender_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    bank_sender_bank = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    bank_transaction_time = serializers.DateTimeField(required=False, allow_null=True, default=None)
    bank_amount_in_currency = serializers.DecimalField(
        max_digits=14,
        decimal_places=2,
        required=False,
        allow_null=True,
        default=None,
        min_value=Decimal("0"),
    )
    bank_exchange_rate = serializers.DecimalField(
        max_digits=18,
        decimal_places=6,
        required=False,
        allow_null=True,
        default=None,
        min_value=Decimal("0"),
    )
    currency = serializers.CharField(max_length=10, required=False, default="USD")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


PAYMENT_VARIANTS = {
    PaymentMethod.CASH: CashPaymentSerializer,
    PaymentMethod.CRYPTO: CryptoPaymentSerializer,
    PaymentMethod.BANK_TRANSFER: BankTransferPaymentSerializer,
}

VARIANT_COLUMNS = {
    method: [name for name in serializer_class().fields if name not in {"notes", "currency"}]
    for method, serializer_class in PAYMENT_VARIANTS.items()
}


def variant_serializer_class(payment_method):
    try:
        return PAYMENT_VARIANTS[PaymentMethod(payment_method)]
    except (KeyError, ValueError):
        raise serializers.ValidationError({"payment_method": f"Unsupported payment method: {payment_method}."})


def validate_payment_details(payment_method, data):
    """Validate ``data`` against the variant for ``payment_method`` and return clean values."""
    serializer = variant_serializer_class(payment_method)(data=data or {})
    if not serializer.is_valid():
        raise serializers.ValidationError({"payment_details": serializer.errors})
    return dict(serializer.validated_data)


def payment_detail_values(payment_method, details, amount):
    """Model field values for a PaymentDetail row, other variants' columns blanked."""
    values = {
        "payment_method": payment_method,
        "amount": amount,
        "currency": details.get("crypto_currency") or details.get("currency") or "USD",
        "notes": details.get("notes", ""),
    }
    for method, columns in VARIANT_COLUMNS.items():
        for column in columns:
            field = PaymentDetail._meta.get_field(column)
            blank = None if field.null else ""
            values[column] = details.get(column, blank) if method == payment_method else blank
    return values


class PaymentDetailSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentDetail
        fields = ["id", "payment_method", "amount", "currency", "notes", "created_at"]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        variant = variant_serializer_class(instance.payment_method)
        rendered = variant(instance).data
        for column in VARIANT_COLUMNS[PaymentMethod(instance.payment_method)]:
            data[column] = rendered.get(column)
        return data
