from rest_framework import serializers

from core.models import PRIORITIES, PROCUREMENT_TYPES, PROCUREMENT_STATUSES, DELIVERY_STATUSES, PAYMENT_STATUSES
from core.serializers.common import CleanCharField, choice_values


class ItemSerializer(serializers.Serializer):
    name = CleanCharField(max_length=200)
    quantity = serializers.IntegerField(min_value=1)
    unit = CleanCharField(max_length=30, required=False, allow_blank=True, default='')
    estimatedUnitCost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0,
                                                 coerce_to_string=False)

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        # items are stored as JSON
        value['estimatedUnitCost'] = float(value['estimatedUnitCost'])
        return value


class SupplyRequestSerializer(serializers.Serializer):
    hospitalId = serializers.IntegerField(source='hospital_id', required=False, allow_null=True)
    departmentId = serializers.IntegerField(source='department_id', required=False, allow_null=True)
    resourceId = serializers.IntegerField(source='resource_id', required=False, allow_null=True)
    items = ItemSerializer(many=True, allow_empty=False)
    justification = CleanCharField()
    priority = serializers.ChoiceField(choices=choice_values(PRIORITIES), required=False)


class ApproveSerializer(serializers.Serializer):
    approverType = serializers.ChoiceField(choices=['HOD', 'ADMIN', 'COUNTY'])


class RejectSerializer(serializers.Serializer):
    reason = CleanCharField()


class OrderSerializer(serializers.Serializer):
    purchaseOrderNumber = CleanCharField(source='purchase_order_number', max_length=40)
    supplierSelected = CleanCharField(source='supplier_selected', max_length=200, required=False,
                                      allow_blank=True)


class DeliverSerializer(serializers.Serializer):
    actualCost = serializers.DecimalField(source='actual_cost', max_digits=14, decimal_places=2, min_value=0,
                                          required=False, allow_null=True)
    quantityReceived = serializers.IntegerField(source='quantity_received', min_value=0, required=False)


class ProcurementSerializer(serializers.Serializer):
    hospitalId = serializers.IntegerField(source='hospital_id', required=False, allow_null=True)
    supplyRequestId = serializers.IntegerField(source='supply_request_id', required=False, allow_null=True)
    procurementType = serializers.ChoiceField(source='procurement_type', choices=choice_values(PROCUREMENT_TYPES))
    items = ItemSerializer(many=True, required=False)
    totalValue = serializers.DecimalField(source='total_value', max_digits=14, decimal_places=2, min_value=0,
                                          required=False)
    supplierName = CleanCharField(source='supplier_name', max_length=200, required=False, allow_blank=True)
    supplierContact = CleanCharField(source='supplier_contact', max_length=200, required=False, allow_blank=True)
    tenderNumber = CleanCharField(source='tender_number', max_length=40, required=False, allow_blank=True)
    contractNumber = CleanCharField(source='contract_number', max_length=40, required=False, allow_blank=True)
    expectedDeliveryDate = serializers.DateField(source='expected_delivery_date', required=False, allow_null=True)
    notes = CleanCharField(required=False, allow_blank=True)


class ProcurementUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=choice_values(PROCUREMENT_STATUSES), required=False)
    deliveryStatus = serializers.ChoiceField(source='delivery_status', choices=choice_values(DELIVERY_STATUSES),
                                             required=False)
    paymentStatus = serializers.ChoiceField(source='payment_status', choices=choice_values(PAYMENT_STATUSES),
                                            required=False)
    paymentAmount = serializers.DecimalField(source='payment_amount', max_digits=14, decimal_places=2,
                                             min_value=0, required=False, allow_null=True)
    supplierName = CleanCharField(source='supplier_name', max_length=200, required=False, allow_blank=True)
    supplierContact = CleanCharField(source='supplier_contact', max_length=200, required=False, allow_blank=True)
    tenderNumber = CleanCharField(source='tender_number', max_length=40, required=False, allow_blank=True)
    contractNumber = CleanCharField(source='contract_number', max_length=40, required=False, allow_blank=True)
    expectedDeliveryDate = serializers.DateField(source='expected_delivery_date', required=False, allow_null=True)
    actualDeliveryDate = serializers.DateField(source='actual_delivery_date', required=False, allow_null=True)
    notes = CleanCharField(required=False, allow_blank=True)
