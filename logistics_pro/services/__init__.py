# Business logic for the shipment lifecycle
