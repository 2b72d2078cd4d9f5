from rest_framework import serializers

from .models import Transaction


class TransactionSerializer(serializers.ModelSerializer):
    formatted_amount = serializers.CharField(read_only=True)

    class Meta:
        model = Transaction
        fields = [
            "id",
            "type",
            "category",
            "amount",
            "formatted_amount",
            "description",
            "date",
            "payment_method",
            "reference",
            "status",
            "created_by",
            "event",
            "department",
            "approved",
            "approved_by",
            "approval_date",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "created_by",
            "approved",
            "approved_by",
            "approval_date",
            "created_at",
            "updated_at",
        ]

    def validate_category(self, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("Category is required.")
        return value

    def validate(self, attrs):
        def current(name):
            if name in attrs:
                return attrs[name]
            return getattr(self.instance, name, None)

        if current("type") == "expense" and not (current("event") or current("department")):
            raise serializers.ValidationError(
                "Expenses must be associated with an event or department."
            )
        return attrs


class CategoryTotalSerializer(serializers.Serializer):
    category = serializers.CharField()
    type = serializers.CharField()
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
    count = serializers.IntegerField()


class FinancialSummarySerializer(serializers.Serializer):
    income = serializers.DecimalField(max_digits=14, decimal_places=2)
    expense = serializers.DecimalField(max_digits=14, decimal_places=2)
    balance = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_transactions = serializers.IntegerField()
    top_categories = CategoryTotalSerializer(many=True, required=False)
    recent = TransactionSerializer(many=True, required=False)
