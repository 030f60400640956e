from flow_execution.domain.models import (
    FieldDefinition,
    FieldMapping,
    FlowDefinition,
    Group,
    NodeMapping,
)

# ==============================================================================
# FLOW 1: SHIPMENT CHECK-IN (branching, merged steps, array group)
# ==============================================================================

# --- GROUP 1: SHIPMENT LOOKUP ---
shipment_group = Group(
    id="grp_shipment",
    name="Shipment",
    description="Identify the shipment you are checking in.",
    sort_order=1,
)

# --- GROUP 2: CONTACT (shown on the same page as the shipment lookup) ---
contact_group = Group(
    id="grp_contact",
    name="Driver Contact",
    sort_order=2,
)

# --- GROUP 3: PIECES (repeating rows) ---
pieces_group = Group(
    id="grp_pieces",
    name="Pieces",
    description="One row per handling unit.",
    sort_order=3,
    is_array_group=True,
    array_min_rows=1,
    array_max_rows=5,
    array_field_name="pieces",
)

# --- GROUP 4: DELIVERY DETAILS (pre-filled from the lookup result) ---
delivery_group = Group(
    id="grp_delivery",
    name="Delivery",
    sort_order=4,
)

# --- GROUP 5: MANUAL ENTRY (failure branch of the lookup) ---
manual_group = Group(
    id="grp_manual",
    name="Manual Entry",
    description="The shipment could not be found. Enter the consignee manually.",
    sort_order=5,
)

shipment_fields = [
    FieldDefinition(
        id="fld_order", group_id="grp_shipment", name="Order Number",
        field_key="orderNumber", field_type="text", is_required=True,
        sort_order=1, placeholder="e.g. 1001234", max_length=20,
    ),
    FieldDefinition(
        id="fld_pickup_zip", group_id="grp_shipment", name="Pickup ZIP",
        field_key="pickupZip", field_type="zip", sort_order=2,
    ),
    FieldDefinition(
        id="fld_email", group_id="grp_contact", name="Email",
        field_key="driverEmail", field_type="email", is_required=True, sort_order=1,
    ),
    FieldDefinition(
        id="fld_phone", group_id="grp_contact", name="Phone",
        field_key="driverPhone", field_type="phone", sort_order=2,
    ),
    FieldDefinition(
        id="fld_piece_desc", group_id="grp_pieces", name="Description",
        field_key="description", field_type="text", is_required=True, sort_order=1,
    ),
    FieldDefinition(
        id="fld_piece_qty", group_id="grp_pieces", name="Quantity",
        field_key="quantity", field_type="number", is_required=True,
        default_value="1", sort_order=2,
    ),
    FieldDefinition(
        id="fld_piece_hazmat", group_id="grp_pieces", name="Hazmat",
        field_key="hazmat", field_type="checkbox", sort_order=3,
    ),
    FieldDefinition(
        id="fld_consignee", group_id="grp_delivery", name="Consignee",
        field_key="consignee", field_type="text", is_required=True, sort_order=1,
    ),
    FieldDefinition(
        id="fld_delivery_postal", group_id="grp_delivery", name="Postal Code",
        field_key="deliveryPostalCode", field_type="postal_code", sort_order=2,
    ),
    FieldDefinition(
        id="fld_reference", group_id="grp_delivery", name="Reference",
        field_key="reference", field_type="text",
        default_value="REF-{{execute.orderNumber}}", sort_order=3,
    ),
    FieldDefinition(
        id="fld_service", group_id="grp_delivery", name="Service Level",
        field_key="serviceLevel", field_type="dropdown", sort_order=4,
        options=[
            {"value": "STD", "description": "Standard"},
            {"value": "EXP", "description": "Expedited"},
        ],
        dropdown_display_mode="value_and_description",
    ),
    FieldDefinition(
        id="fld_manual_consignee", group_id="grp_manual", name="Consignee",
        field_key="manualConsignee", field_type="text", is_required=True, sort_order=1,
    ),
    FieldDefinition(
        id="fld_manual_province", group_id="grp_manual", name="Province",
        field_key="manualProvince", field_type="province", sort_order=2,
        options=["AB", "BC", "MB", "ON", "QC"],
    ),
]

shipment_mappings = [
    NodeMapping(node_id="node_shipment", group_id="grp_shipment"),
    NodeMapping(node_id="node_contact", group_id="grp_contact", display_with_previous=True),
    NodeMapping(
        node_id="node_pieces", group_id="grp_pieces",
        header_content="Pieces for order {{execute.orderNumber}}",
    ),
    NodeMapping(
        node_id="node_delivery",
        group_id="grp_delivery",
        header_content="Delivering to {{lookup.consignee.name}}",
        field_mappings={
            "consignee": FieldMapping(variable_path="lookup.consignee.name", apply_condition="on_success"),
            "deliveryPostalCode": FieldMapping(variable_path="lookup.consignee.postalCode"),
        },
    ),
    NodeMapping(node_id="node_manual", group_id="grp_manual"),
]

shipment_check_in = FlowDefinition(
    button_id="btn_shipment_check_in",
    name="shipment_check_in",
    title="Shipment Check-In",
    groups=[shipment_group, contact_group, pieces_group, delivery_group, manual_group],
    fields=shipment_fields,
    node_mappings=shipment_mappings,
)


# ==============================================================================
# FLOW 2: QUICK NOTE (single group, no branching)
# ==============================================================================

quick_note = FlowDefinition(
    button_id="btn_quick_note",
    name="quick_note",
    title="Add Note",
    groups=[Group(id="grp_note", name="Note", sort_order=1)],
    fields=[
        FieldDefinition(
            id="fld_note", group_id="grp_note", name="Note",
            field_key="note", field_type="text", is_required=True,
        ),
        FieldDefinition(
            id="fld_notify", group_id="grp_note", name="Notify Customer",
            field_key="notifyCustomer", field_type="checkbox",
        ),
    ],
    node_mappings=[NodeMapping(node_id="node_note", group_id="grp_note")],
)


SAMPLE_FLOWS = {
    shipment_check_in.button_id: shipment_check_in,
    quick_note.button_id: quick_note,
}
